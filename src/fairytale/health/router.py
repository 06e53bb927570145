"""Probes for the rewards service.

Readiness hinges on the ``user_stats`` table only. Redis holds nothing but the
shared demo pool, which falls back to its seed when Redis is away, so a Redis
outage is reported without taking the service out of rotation.
"""

from fastapi import APIRouter, Depends, Response
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fairytale.config import get_settings
from fairytale.database import get_session
from fairytale.db.models import UserStatsRow
from fairytale.redis_client import get_redis_or_none

router = APIRouter()


async def _check_stats_table(db: AsyncSession) -> str:
    try:
        await db.execute(select(UserStatsRow.uid).limit(1))
    except (SQLAlchemyError, OSError) as exc:
        return f"error: {exc.__class__.__name__}"
    return "ok"


async def _check_demo_pool_cache() -> str:
    redis = get_redis_or_none()
    if redis is None:
        return "disabled"
    try:
        await redis.ping()
    except (RedisError, OSError):
        return "unavailable"
    return "ok"


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness: the process answers."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    response: Response,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """503 until the stats table answers; Redis state is informational."""
    user_stats = await _check_stats_table(db)
    redis = await _check_demo_pool_cache()

    ready = user_stats == "ok"
    if not ready:
        response.status_code = 503
    return {
        "status": "ready" if ready else "unavailable",
        "checks": {"user_stats": user_stats, "redis": redis},
        "demo_pool": "shared" if redis == "ok" else "seed",
    }


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "service": settings.service_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
