"""
Download endpoint.

Streams an unwatermarked asset in exchange for a one-time token. The token is
consumed before the response starts, so a client that drops mid-transfer
cannot retry with the same token.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from starlette.concurrency import run_in_threadpool

from ...audit import AuditLogger
from ...core.errors import (
    APIException,
    BadRequestError,
    ErrorCode,
    NotFoundError,
    UnauthorizedError,
)
from ...models import ErrorResponse
from ...services import RedemptionService
from ...services.assets import AssetNotFoundError, InvalidAssetNameError
from ...services.redemption import MissingParameterError
from ...services.tokens import (
    AssetMismatchError,
    TokenAlreadyUsedError,
    TokenError,
    TokenExpiredError,
    TokenNotFoundError,
)
from ..deps import (
    elapsed_ms,
    get_audit,
    get_client_ip,
    get_correlation_id,
    get_request_start_time,
    get_service,
)

router = APIRouter()

DOWNLOAD_HEADERS = {
    "Cache-Control": "private, no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "X-Content-Type-Options": "nosniff",
    # Download URLs carry the token
    "Referrer-Policy": "no-referrer",
}

_TOKEN_ERROR_CODES = {
    TokenNotFoundError: ErrorCode.TOKEN_NOT_FOUND,
    TokenExpiredError: ErrorCode.TOKEN_EXPIRED,
    TokenAlreadyUsedError: ErrorCode.TOKEN_ALREADY_USED,
    AssetMismatchError: ErrorCode.ASSET_MISMATCH,
}


def _to_http_error(exc: Exception) -> APIException:
    if isinstance(exc, (MissingParameterError, InvalidAssetNameError)):
        return BadRequestError(str(exc))
    if isinstance(exc, AssetNotFoundError):
        return NotFoundError("File not found")
    return UnauthorizedError(str(exc), _TOKEN_ERROR_CODES[type(exc)])


@router.get(
    "/download",
    summary="Download Asset",
    description="Download an asset once with a token obtained from /redeem.",
    response_class=FileResponse,
    responses={
        200: {"description": "Asset bytes as an attachment"},
        400: {"model": ErrorResponse, "description": "Missing token or asset"},
        401: {"model": ErrorResponse, "description": "Invalid, expired, used or mismatched token"},
        404: {"model": ErrorResponse, "description": "Asset not found"},
    },
)
async def download_asset(
    token: Optional[str] = Query(None, description="One-time download token"),
    asset: Optional[str] = Query(None, description="Asset file name"),
    img: Optional[str] = Query(None, include_in_schema=False),
    service: RedemptionService = Depends(get_service),
    audit_logger: AuditLogger = Depends(get_audit),
    correlation_id: str = Depends(get_correlation_id),
    client_ip: Optional[str] = Depends(get_client_ip),
    start_time: float = Depends(get_request_start_time),
) -> FileResponse:
    """Consume the token, then stream the file as an attachment."""
    asset_name = asset or img

    try:
        # Asset resolution stats the filesystem
        resolved = await run_in_threadpool(service.authorize_download, token, asset_name)
    except (MissingParameterError, InvalidAssetNameError, AssetNotFoundError, TokenError) as e:
        await audit_logger.log_download(
            correlation_id=correlation_id,
            allow=False,
            token=token,
            asset=asset_name,
            client_ip=client_ip,
            error_code=e.error_code,
            error_message=str(e),
            latency_ms=elapsed_ms(start_time),
        )
        raise _to_http_error(e)

    await audit_logger.log_download(
        correlation_id=correlation_id,
        allow=True,
        token=token,
        asset=resolved.name,
        client_ip=client_ip,
        bytes_sent=resolved.size,
        latency_ms=elapsed_ms(start_time),
    )

    return FileResponse(
        path=resolved.path,
        media_type=resolved.media_type,
        filename=resolved.name,
        headers={**DOWNLOAD_HEADERS, "X-Correlation-ID": correlation_id},
    )
