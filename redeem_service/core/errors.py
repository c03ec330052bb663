"""
Standardized error responses.

Every failure leaves the service as `{ok: false, code, msg, correlation_id}`
so the front end can branch on `code` and show `msg` as-is.
"""

import logging
import uuid
from enum import Enum

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    # Request errors
    BAD_REQUEST = "BAD_REQUEST"

    # Asset errors
    ASSET_NOT_FOUND = "ASSET_NOT_FOUND"

    # Redemption code errors
    CODE_NOT_FOUND = "CODE_NOT_FOUND"
    CODE_ALREADY_USED = "CODE_ALREADY_USED"

    # Access token errors
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_ALREADY_USED = "TOKEN_ALREADY_USED"
    ASSET_MISMATCH = "ASSET_MISMATCH"

    # System errors
    LEDGER_ERROR = "LEDGER_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class APIException(HTTPException):
    """HTTPException carrying an error code and a client-facing message."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        headers: dict[str, str] | None = None,
    ):
        self.code = code
        self.message = message
        super().__init__(status_code=status_code, detail=message, headers=headers)


class BadRequestError(APIException):
    """Missing or malformed parameters."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code=ErrorCode.BAD_REQUEST,
            message=message,
        )


class NotFoundError(APIException):
    """Requested asset does not exist."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.ASSET_NOT_FOUND):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code=code,
            message=message,
        )


class UnauthorizedError(APIException):
    """Invalid, used or expired credential (redemption code or access token)."""

    def __init__(self, message: str, code: ErrorCode):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=code,
            message=message,
        )


class InternalError(APIException):
    """Internal server error."""

    def __init__(
        self,
        message: str = "An internal error occurred",
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    ):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=code,
            message=message,
        )


def _correlation_id(request: Request) -> str:
    correlation_id = getattr(request.state, "correlation_id", None)
    return correlation_id or request.headers.get("X-Correlation-ID") or str(uuid.uuid4())


def create_error_response(code: ErrorCode, message: str, correlation_id: str) -> dict:
    """Create a standardized error response dictionary."""
    return {
        "ok": False,
        "code": code.value,
        "msg": message,
        "correlation_id": correlation_id,
    }


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle APIException and return standardized response."""
    correlation_id = _correlation_id(request)
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.code, exc.message, correlation_id),
        headers={**(exc.headers or {}), "X-Correlation-ID": correlation_id},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies and bad query parameters are plain 400s."""
    correlation_id = _correlation_id(request)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=create_error_response(
            ErrorCode.BAD_REQUEST, "Malformed request", correlation_id
        ),
        headers={"X-Correlation-ID": correlation_id},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    correlation_id = _correlation_id(request)

    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"event_type": "system.error.unhandled", "correlation_id": correlation_id},
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(
            ErrorCode.INTERNAL_ERROR, "An unexpected error occurred", correlation_id
        ),
        headers={"X-Correlation-ID": correlation_id},
    )
