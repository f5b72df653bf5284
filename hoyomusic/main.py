"""HoYoMusic API main application."""
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .shared.health import router as health_router
from .shared.metrics import METRICS_CONTENT_TYPE, get_metrics
from .shared.middleware.error_handler import register_exception_handlers
from .shared.middleware.correlation import CorrelationIDMiddleware
from .shared.logging import configure_logging, get_logger
from .shared.config.settings import Settings, get_settings
from .shared.db.pool import Database
from .shared.storage import build_storage_client

from . import models  # noqa: F401  registers tables on the declarative base
from .api.credits import router as credits_router
from .api.lyrics import router as lyrics_router
from .api.streaming import router as streaming_router
from .api.tracks import router as tracks_router
from .api.uploads import router as uploads_router

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; database and storage are opened in the lifespan."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager with graceful shutdown."""
        # Startup
        configure_logging(log_level=settings.log_level, log_format=settings.log_format)
        logger.info("hoyomusic_api_starting", version=settings.app_version)

        db = Database(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            echo=settings.db_echo,
        )
        if settings.create_schema:
            await db.create_tables()

        storage = build_storage_client(settings)
        await storage.initialize()

        app.state.settings = settings
        app.state.db = db
        app.state.storage = storage

        logger.info(
            "hoyomusic_api_started",
            version=settings.app_version,
            storage_mode=settings.storage_mode.value,
            auth_enabled=settings.auth_enabled,
        )

        yield

        # Shutdown
        logger.info("hoyomusic_api_shutting_down")
        await storage.close()
        await db.dispose()
        logger.info("hoyomusic_api_shutdown")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Music library catalog with FLAC ingestion and credit extraction",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware
    app.add_middleware(CorrelationIDMiddleware)

    # Register all exception handlers
    register_exception_handlers(app)

    # Include routers
    app.include_router(health_router)
    app.include_router(uploads_router, prefix=settings.api_prefix)
    app.include_router(streaming_router, prefix=settings.api_prefix)
    app.include_router(tracks_router, prefix=settings.api_prefix)
    app.include_router(credits_router, prefix=settings.api_prefix)
    app.include_router(lyrics_router, prefix=settings.api_prefix)

    # Prometheus metrics endpoint
    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(content=get_metrics(), media_type=METRICS_CONTENT_TYPE)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=3001)
