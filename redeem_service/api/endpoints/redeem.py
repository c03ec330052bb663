"""
Redeem endpoint.

Exchanges a single-use redemption code for a one-time download token bound
to one asset.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from ...audit import AuditLogger
from ...core.errors import (
    APIException,
    BadRequestError,
    ErrorCode,
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from ...models import ErrorResponse, RedeemRequest, RedeemResponse
from ...services import RedemptionService
from ...services.assets import AssetNotFoundError, InvalidAssetNameError
from ...services.ledger import (
    CodeAlreadyUsedError,
    CodeNotFoundError,
    LedgerError,
    LedgerPersistenceError,
)
from ...services.redemption import MissingParameterError
from ..deps import (
    elapsed_ms,
    get_audit,
    get_client_ip,
    get_correlation_id,
    get_request_start_time,
    get_service,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def describe_ttl(seconds: int) -> str:
    """Render a token lifetime as "5 minutes", "1 minute" or "90 seconds"."""
    if seconds % 60 == 0:
        count, unit = seconds // 60, "minute"
    else:
        count, unit = seconds, "second"
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def _to_http_error(exc: Exception) -> APIException:
    if isinstance(exc, (MissingParameterError, InvalidAssetNameError)):
        return BadRequestError(str(exc))
    if isinstance(exc, AssetNotFoundError):
        return NotFoundError("Unwatermarked asset not found")
    if isinstance(exc, CodeNotFoundError):
        return UnauthorizedError(str(exc), ErrorCode.CODE_NOT_FOUND)
    if isinstance(exc, CodeAlreadyUsedError):
        return UnauthorizedError(str(exc), ErrorCode.CODE_ALREADY_USED)
    return InternalError("Redemption could not be recorded, please retry", ErrorCode.LEDGER_ERROR)


@router.post(
    "/redeem",
    response_model=RedeemResponse,
    summary="Redeem Code",
    description="Consume a redemption code and receive a one-time download token.",
    responses={
        400: {"model": ErrorResponse, "description": "Missing code or asset"},
        401: {"model": ErrorResponse, "description": "Invalid or already-used code"},
        404: {"model": ErrorResponse, "description": "Asset not found"},
        500: {"model": ErrorResponse, "description": "Ledger could not be written"},
    },
)
async def redeem_code(
    data: RedeemRequest,
    service: RedemptionService = Depends(get_service),
    audit_logger: AuditLogger = Depends(get_audit),
    correlation_id: str = Depends(get_correlation_id),
    client_ip: Optional[str] = Depends(get_client_ip),
    start_time: float = Depends(get_request_start_time),
) -> RedeemResponse:
    """
    Redeem a code for an asset.

    The asset must exist before the ledger is consulted. The token is only
    issued after the ledger write has completed.
    """
    asset_name = data.asset or data.img

    try:
        # Ledger I/O is blocking; keep it off the event loop
        result = await run_in_threadpool(service.redeem, data.code, asset_name)
    except (MissingParameterError, InvalidAssetNameError, AssetNotFoundError, LedgerError) as e:
        if isinstance(e, LedgerPersistenceError):
            logger.error(
                f"Ledger persistence failed: {e}",
                extra={"event_type": "ledger.persistence_failed", "correlation_id": correlation_id},
            )
        await audit_logger.log_redeem(
            correlation_id=correlation_id,
            allow=False,
            code=data.code,
            asset=asset_name,
            client_ip=client_ip,
            error_code=e.error_code,
            error_message=str(e),
            latency_ms=elapsed_ms(start_time),
        )
        raise _to_http_error(e)

    await audit_logger.log_redeem(
        correlation_id=correlation_id,
        allow=True,
        code=data.code,
        asset=result.asset.name,
        client_ip=client_ip,
        latency_ms=elapsed_ms(start_time),
    )

    lifetime = describe_ttl(result.ttl_seconds)
    return RedeemResponse(
        token=result.token.token,
        msg=f"Code redeemed. The download link is valid for {lifetime} and works once.",
        asset=result.asset.name,
        expires_in=result.ttl_seconds,
        expires_at=result.token.expires_at,
    )
