"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from whbjj.admin.router import router as admin_router
from whbjj.auth.router import router as auth_router
from whbjj.config import Settings, get_settings
from whbjj.content.service import seed_belt_levels
from whbjj.database import Database
from whbjj.health.router import router as health_router
from whbjj.media.storage import MediaStorage
from whbjj.middleware import setup_middleware
from whbjj.redis_client import close_redis, create_redis
from whbjj.techniques.router import router as techniques_router
from whbjj.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings: Settings = app.state.settings
    owns_db = getattr(app.state, "db", None) is None
    if owns_db:
        app.state.db = Database(settings.database_url, echo=settings.debug)
    database: Database = app.state.db

    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)

    if settings.seed_reference_data:
        # Seed belt levels (idempotent)
        try:
            async with database.session() as db:
                await seed_belt_levels(db)
        except SQLAlchemyError:
            logger.warning("belt_level_seeding_failed", exc_info=True)

    if settings.redis_url:
        app.state.redis = create_redis(settings.redis_url)

    logger.info("app_started", environment=settings.environment, version=settings.app_version)
    yield

    await close_redis(app.state.redis)
    app.state.redis = None
    if owns_db:
        await database.close()
        app.state.db = None


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``database`` lets callers (tests, scripts) supply an already constructed
    store handle; otherwise one is built from settings at startup.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Workshop Honolulu BJJ API",
        description="Technique library API for Workshop Honolulu BJJ members",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = database
    app.state.redis = None
    app.state.storage = MediaStorage(settings.upload_dir, settings.upload_url_prefix)

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(techniques_router)
    app.include_router(admin_router)
    app.mount(
        settings.upload_url_prefix,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str]:
        return {"message": "Welcome to Workshop Honolulu BJJ API"}

    return app


app = create_app()
