"""Health check endpoint.

Reports the service version and whether the Human Pages backend answers.
Used by container healthchecks and load balancers.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter
from pydantic import BaseModel

from humanpages import __version__
from humanpages.config import get_settings
from humanpages.logging_config import get_logger

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    version: str
    backend: str


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the MCP server and its backend.",
)
async def health_check() -> HealthResponse:
    """Check that the backend answers on its promo-status endpoint."""
    settings = get_settings()
    try:
        async with httpx.AsyncClient(base_url=settings.api_root, timeout=settings.http_timeout_seconds) as client:
            response = await client.get("/api/agents/activate/promo-status")
        backend_status = "healthy" if response.is_success else f"unhealthy: HTTP {response.status_code}"
    except httpx.HTTPError as exc:
        backend_status = f"unhealthy: {exc}"
        logger.error("health.backend_check_failed", error=str(exc))

    return HealthResponse(
        status="ok" if backend_status == "healthy" else "degraded",
        version=__version__,
        backend=backend_status,
    )
