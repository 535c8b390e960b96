"""Operational routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from src.api.dependencies import get_context
from src.context import AppContext
from src.database import health_check as db_health_check

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(ctx: AppContext = Depends(get_context)) -> dict:
    """Health check endpoint.

    Redis is reported through the cache client the services use, so a cache
    that came up without Redis stays "unavailable" for the life of the app.

    Returns:
        Status, timestamp in ISO8601 format, and database/Redis state
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    db_healthy = await db_health_check()
    health_status["database"] = "healthy" if db_healthy else "unhealthy"

    redis_healthy = await ctx.cache.ping()
    health_status["redis"] = "healthy" if redis_healthy else "unavailable"

    return health_status
