"""API module."""
from fastapi import APIRouter

from .endpoints import download, health, redeem

router = APIRouter()

# Include all endpoint routers
router.include_router(health.router, tags=["Health"])
router.include_router(redeem.router, tags=["Redeem"])
router.include_router(download.router, tags=["Download"])
