"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from fairytale.config import get_settings
from fairytale.database import close_db, create_schema, init_db
from fairytale.dependencies import get_stats_store
from fairytale.health.router import router as health_router
from fairytale.middleware import setup_middleware
from fairytale.redis_client import close_redis, init_redis
from fairytale.rewards.router import router as rewards_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    if settings.auto_create_schema:
        await create_schema()
        logger.info("schema_created")

    yield

    # The cached store holds a reference to the disposed session factory
    get_stats_store.cache_clear()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Fairytale Rewards API",
        description="XP, levels, streaks, badges and leaderboard for the Fairytale project tracker",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(rewards_router)

    return app


app = create_app()
