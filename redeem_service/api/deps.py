"""
API dependencies shared by the endpoints.
"""
import time
import uuid
from typing import Optional

from fastapi import Request

from ..audit import AuditLogger, get_audit_logger
from ..services import RedemptionService, get_redemption_service


async def get_correlation_id(request: Request) -> str:
    """
    Get the correlation ID for request tracing.

    Set by CorrelationIdMiddleware; falls back to the header or a new UUID
    when the middleware is not installed.
    """
    correlation_id = getattr(request.state, "correlation_id", None)
    return correlation_id or request.headers.get("X-Correlation-ID") or str(uuid.uuid4())


async def get_client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


async def get_request_start_time() -> float:
    """Get the request start time for latency tracking."""
    return time.time()


def get_service() -> RedemptionService:
    return get_redemption_service()


def get_audit() -> AuditLogger:
    return get_audit_logger()


def elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)
