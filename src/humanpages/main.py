"""FastAPI application entry point for the streamable-HTTP MCP transport.

Lifecycle:
    1. Startup: Initialize logging, start the MCP session manager.
    2. Running: Serve /health and the MCP endpoint at /mcp on one Uvicorn process.
    3. Shutdown: Stop the session manager.

Run with:
    MCP_TRANSPORT=streamable-http python -m humanpages
    uvicorn humanpages.main:app --host 127.0.0.1 --port 3002
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from humanpages import __version__
from humanpages.config import get_settings
from humanpages.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info("app.starting", env=settings.app_env, backend=settings.api_root)

    from humanpages.mcp_server.tools import mcp

    async with mcp.session_manager.run():
        logger.info("app.started", host=settings.http_host, port=settings.http_port)
        yield
        logger.info("app.shutting_down")

    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Human Pages MCP",
        description="Let AI agents discover, hire, pay and review real people.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )

    # --- Middleware ---
    from humanpages.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST Routes ---
    from humanpages.api.routes.health import router as health_router

    app.include_router(health_router)

    # --- MCP Server (streamable HTTP, served at /mcp) ---
    from humanpages.mcp_server.tools import mcp

    app.mount("/", mcp.streamable_http_app())

    return app


# The app instance used by Uvicorn
app = create_app()
