"""
Structured audit logging for redemptions and downloads.

Every redeem and download attempt is appended to a JSON Lines file with:
- No raw redemption codes or access tokens (only SHA-256 hashes)
- The sanitized asset name
- Client IP and correlation ID for tracing
"""
import asyncio
import hashlib
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.config import get_settings


class AuditAction(str, Enum):
    """Audit action types."""
    REDEEM_ACCEPTED = "REDEEM_ACCEPTED"
    REDEEM_DENIED = "REDEEM_DENIED"
    DOWNLOAD_SERVED = "DOWNLOAD_SERVED"
    DOWNLOAD_DENIED = "DOWNLOAD_DENIED"


def hash_secret(value: Optional[str]) -> Optional[str]:
    """SHA-256 of a code or token. Never log the raw value."""
    if not value:
        return None
    return hashlib.sha256(value.encode()).hexdigest()


@dataclass
class AuditEvent:
    """Structured audit event."""
    correlation_id: str
    timestamp: str
    action: str
    endpoint: str
    allow: bool

    asset: Optional[str] = None
    code_hash: Optional[str] = None
    token_hash: Optional[str] = None
    client_ip: Optional[str] = None

    bytes_sent: int = 0
    latency_ms: int = 0

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        data = asdict(self)
        # Remove None values for cleaner logs
        data = {k: v for k, v in data.items() if v is not None}
        return json.dumps(data, default=str)

    @classmethod
    def create(
        cls,
        action: AuditAction,
        endpoint: str,
        allow: bool,
        correlation_id: str,
        **kwargs
    ) -> "AuditEvent":
        return cls(
            correlation_id=correlation_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action.value,
            endpoint=endpoint,
            allow=allow,
            **kwargs
        )


class AuditLogger:
    """
    Async-safe structured audit logger.

    Writes JSON Lines to the audit log file from an executor thread, one
    writer at a time. A failed write falls back to the Python logger and
    never fails the request being audited.
    """

    def __init__(self, log_path: Path = None, enabled: bool = None):
        settings = get_settings()
        self._log_path = Path(log_path if log_path is not None else settings.audit_log_path)
        self._enabled = settings.AUDIT_ENABLED if enabled is None else enabled

        self._logger = logging.getLogger("redeem_service.audit")
        self._write_lock = asyncio.Lock()

    @property
    def log_path(self) -> Path:
        return self._log_path

    async def log(self, event: AuditEvent):
        json_line = event.to_json()

        if not self._enabled:
            self._logger.debug(json_line, extra={"event_type": f"audit.{event.action.lower()}"})
            return

        async with self._write_lock:
            try:
                def _write():
                    self._log_path.parent.mkdir(parents=True, exist_ok=True)
                    with open(self._log_path, "a", encoding="utf-8") as f:
                        f.write(json_line + "\n")

                await asyncio.get_running_loop().run_in_executor(None, _write)
            except OSError as e:
                self._logger.error(f"Failed to write audit log: {e}")
                self._logger.info(json_line, extra={"event_type": "audit.fallback"})

    async def log_redeem(
        self,
        correlation_id: str,
        allow: bool,
        code: str = None,
        asset: str = None,
        client_ip: str = None,
        error_code: str = None,
        error_message: str = None,
        latency_ms: int = 0,
    ):
        """Log a redemption attempt."""
        event = AuditEvent.create(
            action=AuditAction.REDEEM_ACCEPTED if allow else AuditAction.REDEEM_DENIED,
            endpoint="/redeem",
            allow=allow,
            correlation_id=correlation_id,
            asset=asset,
            code_hash=hash_secret(code),
            client_ip=client_ip,
            error_code=error_code,
            error_message=error_message,
            latency_ms=latency_ms,
        )
        await self.log(event)

    async def log_download(
        self,
        correlation_id: str,
        allow: bool,
        token: str = None,
        asset: str = None,
        client_ip: str = None,
        bytes_sent: int = 0,
        error_code: str = None,
        error_message: str = None,
        latency_ms: int = 0,
    ):
        """Log a download attempt."""
        event = AuditEvent.create(
            action=AuditAction.DOWNLOAD_SERVED if allow else AuditAction.DOWNLOAD_DENIED,
            endpoint="/download",
            allow=allow,
            correlation_id=correlation_id,
            asset=asset,
            token_hash=hash_secret(token),
            client_ip=client_ip,
            bytes_sent=bytes_sent,
            error_code=error_code,
            error_message=error_message,
            latency_ms=latency_ms,
        )
        await self.log(event)


# Singleton instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get the audit logger singleton."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def reset_audit_logger():
    """Reset the audit logger singleton (for testing)."""
    global _audit_logger
    _audit_logger = None
