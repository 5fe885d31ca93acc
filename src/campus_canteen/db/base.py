from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

# Declarative base shared by all models
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
