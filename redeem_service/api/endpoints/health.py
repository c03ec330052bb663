"""
Health check endpoints.

No authentication and no dependency checks: once the process accepts
connections it reports healthy.
"""
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from ...core.config import get_settings
from ...models import HealthResponse

router = APIRouter()


@router.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root() -> str:
    return "Backend is running. Use /health /redeem /download"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Liveness probe.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(version=get_settings().APP_VERSION)
