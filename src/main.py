"""FastAPI application entry point — wires everything together.

Usage:
    python -m src.main

Serves the quoting API on top of the storage backend chosen by STORAGE_BACKEND.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
import uvicorn
from fastapi import FastAPI

from src.api import admin, catalog, quotes
from src.api.errors import register_exception_handlers
from src.auth.identity import Authenticator
from src.catalog.demo import seed_demo_catalog
from src.config import Settings, settings
from src.storage.base import StorageBackend
from src.storage.factory import create_backend

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)


# ── FastAPI app ──────────────────────────────────────────────────────


def create_app(app_settings: Settings | None = None, backend: StorageBackend | None = None) -> FastAPI:
    """Build the API. Without an explicit backend one is created from settings at startup."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application startup and shutdown lifecycle."""
        logger.info("Starting Quotedesk (env=%s)", app_settings.environment)

        # 1. Storage
        storage = backend or create_backend(app_settings)
        await storage.init()
        app.state.backend = storage
        logger.info("%s backend initialized", storage.name)

        # 2. Demo catalog, only into an empty store
        if app_settings.storage.seed_demo_data:
            await seed_demo_catalog(storage, datetime.now(UTC))

        try:
            yield
        finally:
            logger.info("Shutting down Quotedesk...")
            await storage.close()
            logger.info("%s backend closed", storage.name)

    app = FastAPI(
        title="Quotedesk API",
        description="Unit catalog, discount resolution and quotes",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.authenticator = Authenticator(app_settings.auth)

    register_exception_handlers(app)
    app.include_router(catalog.router)
    app.include_router(quotes.router)
    app.include_router(admin.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "ok",
            "environment": app_settings.environment,
            "storage_backend": app.state.backend.name,
        }

    return app


app = create_app()


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
