import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..db.session import get_async_session

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
async def health_check(db: AsyncSession = Depends(get_async_session)):
    """
    Service status plus database reachability.
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as exc:
        logger.warning("Health check: database unreachable: %s", exc)
        database = f"error: {str(exc)[:100]}"

    healthy = database == "ok"
    return JSONResponse(
        content={
            "status": "ok" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.SERVICE_VERSION,
            "database": database,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        status_code=200 if healthy else 503,
    )
