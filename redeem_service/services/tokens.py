"""
In-memory store of one-time download tokens.

Tokens are opaque UUID4 strings bound to a single asset. They:
- Expire after a configurable TTL
- Can be consumed exactly once
- Only unlock the asset they were issued for

The store is process-local and lost on restart, which leaves every issued
token permanently invalid.
"""
import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from ..core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class AccessToken:
    """A single-use download credential."""
    token: str
    asset_id: str
    expires_at: datetime
    used: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class TokenError(Exception):
    """Base exception for access token errors."""
    error_code: str = "TOKEN_ERROR"


class TokenNotFoundError(TokenError):
    """Raised when a token is unknown."""
    error_code = "TOKEN_NOT_FOUND"


class TokenExpiredError(TokenError):
    """Raised when a token is past its expiry."""
    error_code = "TOKEN_EXPIRED"


class TokenAlreadyUsedError(TokenError):
    """Raised when a token has already been consumed."""
    error_code = "TOKEN_ALREADY_USED"


class AssetMismatchError(TokenError):
    """Raised when a token is presented for a different asset."""
    error_code = "ASSET_MISMATCH"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_ttl(ttl_seconds: int) -> int:
    if ttl_seconds <= 0:
        raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
    return ttl_seconds


class TokenStore:
    """
    Lock-guarded registry of access tokens.

    Callers never touch entries directly; `issue` and `consume` are the only
    ways to change state, and each runs under a single threading.Lock.
    Expired entries are evicted when they are read, or in bulk by
    `purge_expired`.
    """

    def __init__(
        self,
        ttl_seconds: int = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the token store.

        Args:
            ttl_seconds: Default time-to-live for issued tokens
            clock: Returns the current aware datetime
        """
        if ttl_seconds is None:
            ttl_seconds = get_settings().TOKEN_TTL_SECONDS
        self._ttl = _validate_ttl(ttl_seconds)
        self._clock = clock
        self._tokens: Dict[str, AccessToken] = {}
        self._lock = threading.Lock()

    @property
    def default_ttl(self) -> int:
        return self._ttl

    def issue(self, asset_id: str, ttl_seconds: int = None) -> AccessToken:
        """
        Mint a token bound to an asset.

        Args:
            asset_id: Sanitized asset name
            ttl_seconds: Overrides the default TTL

        Returns:
            A copy of the stored token

        Raises:
            ValueError: If ttl_seconds is not positive
        """
        ttl = self._ttl if ttl_seconds is None else _validate_ttl(ttl_seconds)
        expires_at = self._clock() + timedelta(seconds=ttl)

        with self._lock:
            token_id = str(uuid.uuid4())
            while token_id in self._tokens:
                token_id = str(uuid.uuid4())
            entry = AccessToken(token=token_id, asset_id=asset_id, expires_at=expires_at)
            self._tokens[token_id] = entry
            issued = replace(entry)

        logger.info(
            "Access token issued",
            extra={"event_type": "token.issued", "asset": asset_id, "ttl_seconds": ttl},
        )
        return issued

    def consume(self, token: str, asset_id: str) -> AccessToken:
        """
        Validate a token for an asset and mark it used.

        Raises:
            TokenNotFoundError: Unknown token
            TokenExpiredError: Token past expiry (evicted)
            TokenAlreadyUsedError: Token was consumed before
            AssetMismatchError: Token is bound to another asset
        """
        with self._lock:
            entry = self._tokens.get(token)
            if entry is None:
                raise TokenNotFoundError("Token is invalid or has expired")

            if entry.is_expired(self._clock()):
                del self._tokens[token]
                raise TokenExpiredError("Token has expired")

            if entry.used:
                raise TokenAlreadyUsedError("Token has already been used")

            if entry.asset_id != asset_id:
                raise AssetMismatchError("Token does not match the requested asset")

            entry.used = True
            consumed = replace(entry)

        logger.info(
            "Access token consumed",
            extra={"event_type": "token.consumed", "asset": asset_id},
        )
        return consumed

    def get(self, token: str) -> Optional[AccessToken]:
        """Return a copy of a live token, evicting it if expired."""
        with self._lock:
            entry = self._tokens.get(token)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._tokens[token]
                return None
            return replace(entry)

    def purge_expired(self) -> int:
        """Remove expired tokens. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, v in self._tokens.items() if v.is_expired(now)]
            for key in expired:
                del self._tokens[key]

        if expired:
            logger.debug(
                "Purged expired access tokens",
                extra={"event_type": "token.purged", "count": len(expired)},
            )
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


# Singleton instance
_token_store: Optional[TokenStore] = None


def get_token_store() -> TokenStore:
    """Get the token store singleton."""
    global _token_store
    if _token_store is None:
        _token_store = TokenStore()
    return _token_store


def reset_token_store():
    """Reset the token store singleton (for testing)."""
    global _token_store
    _token_store = None
