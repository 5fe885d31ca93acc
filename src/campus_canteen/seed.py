"""
Creates the schema if needed and loads sample data: an admin account and a few
menu items.

    python -m campus_canteen.seed
"""
import asyncio
import logging
from decimal import Decimal

from sqlalchemy import select

from campus_canteen.auth import create_access_token
from campus_canteen.config import settings
from campus_canteen.db.base import Base
from campus_canteen.db.session import AsyncSessionLocal, engine
from campus_canteen.logging_config import configure_logging
from campus_canteen.models import MenuItem, RoleEnum, User

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@example.com"

SAMPLE_ITEMS = [
    {"name": "Sample Pizza", "description": "Cheesy classic", "price": Decimal("199"), "category": "Pizza"},
    {"name": "Sample Burger", "description": "Veg burger", "price": Decimal("99"), "category": "Burgers"},
    {"name": "French Fries", "description": "Crispy fries", "price": Decimal("49"), "category": "Sides"},
]


async def seed(session) -> User:
    admin = (await session.execute(select(User).where(User.email == ADMIN_EMAIL))).scalar_one_or_none()
    if admin is None:
        admin = User(name="Admin", role=RoleEnum.admin, email=ADMIN_EMAIL)
        session.add(admin)
        logger.info("Created admin %s", ADMIN_EMAIL)

    existing = set((await session.execute(select(MenuItem.name))).scalars().all())
    for data in SAMPLE_ITEMS:
        if data["name"] not in existing:
            session.add(MenuItem(**data))
            logger.info("Inserted menu item %s", data["name"])

    await session.commit()
    return admin


async def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        admin = await seed(session)
        logger.info("Admin token: %s", create_access_token(admin.id, admin.role, admin.name))

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
