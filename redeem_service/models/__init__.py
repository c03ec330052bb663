"""API models and schemas."""
from .schemas import (
    ErrorResponse,
    HealthResponse,
    RedeemRequest,
    RedeemResponse,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "RedeemRequest",
    "RedeemResponse",
]
