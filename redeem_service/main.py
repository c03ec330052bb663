"""
Redeem Download Service

Exchanges single-use redemption codes for one-time, time-limited downloads
of unwatermarked images.

Features:
- Code ledger persisted as JSON, one successful redemption per code
- In-memory one-time download tokens bound to a single asset
- Basename-only asset resolution (no path traversal)
- Structured JSON logging with token redaction
- JSON Lines audit trail
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .api import router as api_router
from .core.config import get_settings
from .core.errors import (
    APIException,
    api_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from .core.logging_config import configure_logging
from .core.middleware import CorrelationIdMiddleware, SecurityHeadersMiddleware
from .services import get_token_store

logger = logging.getLogger("redeem_service")


async def sweep_expired_tokens(interval_seconds: int):
    """Periodically purge expired tokens until cancelled."""
    store = get_token_store()
    while True:
        await asyncio.sleep(interval_seconds)
        removed = store.purge_expired()
        if removed:
            logger.info(
                f"Purged {removed} expired access tokens",
                extra={"event_type": "token.sweep", "count": removed},
            )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging()

    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Asset directory: {settings.ASSET_DIR}")
    logger.info(f"Ledger file: {settings.CODES_FILE}")
    logger.info(f"Token TTL: {settings.TOKEN_TTL_SECONDS}s")

    if not settings.ASSET_DIR.is_dir():
        logger.warning(f"Asset directory {settings.ASSET_DIR} does not exist; every redeem will 404")
    if not settings.CODES_FILE.exists():
        logger.warning(f"Ledger file {settings.CODES_FILE} does not exist; no code will redeem")

    sweeper = None
    if settings.TOKEN_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = asyncio.create_task(
            sweep_expired_tokens(settings.TOKEN_SWEEP_INTERVAL_SECONDS)
        )

    yield

    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass

    logger.info(f"Shutting down {settings.APP_NAME}")


def create_app() -> FastAPI:
    """Build the FastAPI application from current settings."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
Redeem a single-use code for a one-time download of an unwatermarked image.

## Flow
1. `POST /redeem` with `{"code": "...", "asset": "1.jpg"}` returns a token
2. `GET /download?token=...&asset=1.jpg` streams the file once

Tokens expire after the configured TTL and only unlock the asset they were
issued for.
        """,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.expose_docs else None,
        redoc_url="/redoc" if settings.expose_docs else None,
        openapi_url="/openapi.json" if settings.expose_docs else None,
    )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Correlation-ID"],
    )
    # Added last so it runs first and the id is set for everything below
    app.add_middleware(CorrelationIdMiddleware)

    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "redeem_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
