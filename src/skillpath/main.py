"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from skillpath.assistant.router import router as assistant_router
from skillpath.auth.router import router as auth_router
from skillpath.config import get_settings
from skillpath.database import close_db, create_schema, get_session, init_db
from skillpath.gamification.catalog import seed_achievements
from skillpath.gamification.router import router as gamification_router
from skillpath.health.router import router as health_router
from skillpath.middleware import setup_middleware
from skillpath.redis_client import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.auto_create_schema:
        await create_schema()
    if settings.redis_enabled:
        await init_redis(settings.redis_url)

    # Seed achievement definitions (idempotent)
    try:
        async for db in get_session():
            await seed_achievements(db)
            break
    except SQLAlchemyError:
        logger.warning("achievement_seed_failed", exc_info=True)

    logger.info("startup_complete", environment=settings.environment, redis=settings.redis_enabled)
    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SkillPath API",
        description="Gamification backend for the SkillPath learning platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(gamification_router)
    app.include_router(assistant_router)

    return app


app = create_app()
