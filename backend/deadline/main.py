"""FastAPI application factory and main entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from deadline.config import get_settings
from deadline.logging_config import setup_logging

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown events."""
    setup_logging(settings)
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    # Ensure instance directory exists; tables are managed by alembic
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Database ready: {settings.database_path}")

    yield

    logger.info("Shutting down application")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "version": settings.app_version}

    from deadline.routers import pipeline, public, revalidate, search

    # Public read routes
    app.include_router(public.router, prefix=settings.api_prefix)

    # Operator routes (API key required)
    app.include_router(search.router, prefix=settings.api_prefix)
    app.include_router(revalidate.router, prefix=settings.api_prefix)
    app.include_router(pipeline.router, prefix=settings.api_prefix)

    return app


# Create app instance for uvicorn
app = create_app()
