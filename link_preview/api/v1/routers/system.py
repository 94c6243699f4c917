"""
System Router - Health and status endpoints.
"""

from fastapi import APIRouter

from ....config import settings
from ....models import HealthResponse
from ....services.cache_manager import cache_manager

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Check service health.

    Returns:
        HealthResponse with status and cache connection state
    """
    return HealthResponse(
        status="healthy",
        cache_state=cache_manager.state.value,
    )


@router.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "service": settings.api_title,
        "version": settings.api_version,
        "status": "running",
    }
