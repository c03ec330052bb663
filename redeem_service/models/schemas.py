"""
Pydantic schemas for API requests and responses.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RedeemRequest(BaseModel):
    """Redeem request body.

    Both fields are optional at the schema level so an incomplete body is
    answered with the service's own 400 rather than a validation error.
    """
    code: Optional[str] = Field(None, description="Single-use redemption code")
    asset: Optional[str] = Field(None, description="Asset file name, reduced to its basename")
    img: Optional[str] = Field(None, description="Legacy alias for asset")

    model_config = ConfigDict(
        json_schema_extra={"example": {"code": "XMAS-7F3K-9QPL", "asset": "1.jpg"}}
    )


class RedeemResponse(BaseModel):
    """Successful redemption."""
    ok: bool = Field(True, description="Always true on success")
    token: str = Field(..., description="One-time download token")
    msg: str = Field(..., description="Human-readable message")
    asset: str = Field(..., description="Sanitized asset name the token is bound to")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    expires_at: datetime = Field(..., description="Token expiry (UTC)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ok": True,
                "token": "550e8400-e29b-41d4-a716-446655440000",
                "msg": "Code redeemed. The download link is valid for 60 minutes and works once.",
                "asset": "1.jpg",
                "expires_in": 3600,
                "expires_at": "2026-12-24T19:00:00+00:00",
            }
        }
    )


class ErrorResponse(BaseModel):
    """Standard error response."""
    ok: bool = Field(False, description="Always false on error")
    code: str = Field(..., description="Machine-readable error code")
    msg: str = Field(..., description="Human-readable error message")
    correlation_id: str = Field(..., description="Request correlation ID for tracing")


class HealthResponse(BaseModel):
    """Health check response."""
    ok: bool = Field(True, description="Process is accepting connections")
    msg: str = Field("server is running", description="Status message")
    version: str = Field(..., description="Service version")
