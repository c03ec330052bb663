"""
Redemption code ledger.

Durable record of provisioned redemption codes and whether each one has been
spent. The ledger is read in full on every operation and rewritten in full on
every mutation. `CodeLedger` holds a thread lock plus the store's exclusive
file lock around the whole read-mutate-write sequence, so concurrent
redemptions of a code are serialized and exactly one of them wins, even when
another process (the provisioning script) writes the same file.

Persisted layout (JSON):

    {"codes": [{"code": "X1", "used": false, "usedAt": null}, ...]}
"""
import fcntl
import json
import logging
import os
import stat
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, ContextManager, Dict, Iterable, Iterator, List, Optional, Protocol

from ..core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedemptionCode:
    """A single-use redemption code."""
    code: str
    used: bool = False
    used_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "used": self.used,
            "usedAt": self.used_at.isoformat() if self.used_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RedemptionCode":
        used_at = data.get("usedAt")
        return cls(
            code=str(data["code"]),
            used=bool(data.get("used", False)),
            used_at=datetime.fromisoformat(used_at) if used_at else None,
        )


class LedgerError(Exception):
    """Base exception for ledger errors."""
    error_code: str = "LEDGER_ERROR"


class CodeNotFoundError(LedgerError):
    """Raised when a redemption code is not in the ledger."""
    error_code = "CODE_NOT_FOUND"


class CodeAlreadyUsedError(LedgerError):
    """Raised when a redemption code has already been redeemed."""
    error_code = "CODE_ALREADY_USED"


class LedgerPersistenceError(LedgerError):
    """Raised when the ledger cannot be read or written."""
    error_code = "LEDGER_ERROR"


class LedgerStore(Protocol):
    """Persistence backend for the ledger.

    `load` returns every record keyed by code; `save` durably replaces the
    whole collection; `locked` excludes every other writer of the same ledger
    for the duration of a load-mutate-save. All raise `LedgerPersistenceError`
    on failure.
    """

    def locked(self) -> ContextManager[None]:
        ...

    def load(self) -> Dict[str, RedemptionCode]:
        ...

    def save(self, records: Dict[str, RedemptionCode]) -> None:
        ...


class JsonFileLedgerStore:
    """Ledger store backed by a single JSON document on disk.

    Writes go to a temporary file in the same directory which is fsynced and
    then atomically renamed over the ledger, so readers only ever see the old
    or the new state.

    Writers serialize on an `fcntl.flock` of a sidecar `<ledger>.lock` file,
    which also excludes writers in other processes.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold an exclusive lock on the ledger across processes."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            lock_file = open(self.lock_path, "a")
        except OSError as e:
            raise LedgerPersistenceError(f"Cannot lock ledger {self._path}: {e}") from e

        try:
            fcntl.flock(lock_file, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file, fcntl.LOCK_UN)
        finally:
            lock_file.close()

    def load(self) -> Dict[str, RedemptionCode]:
        # A missing file is an empty ledger
        if not self._path.exists():
            return {}

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            records = [RedemptionCode.from_dict(item) for item in data.get("codes", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise LedgerPersistenceError(f"Cannot read ledger {self._path}: {e}") from e

        return {record.code: record for record in records}

    def save(self, records: Dict[str, RedemptionCode]) -> None:
        payload = {"codes": [record.to_dict() for record in records.values()]}
        directory = self._path.parent
        tmp_name = None

        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            # mkstemp creates 0600; keep the existing ledger's permissions
            if self._path.exists():
                os.chmod(tmp_name, stat.S_IMODE(self._path.stat().st_mode))
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as e:
            raise LedgerPersistenceError(f"Cannot write ledger {self._path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CodeLedger:
    """
    Single-writer ledger of redemption codes.

    Features:
    - Atomic validate-and-consume of a code (`redeem`)
    - Persist-before-success: a code only counts as redeemed once the
      ledger write has completed
    - Out-of-band provisioning of new codes
    - Thread-safe via threading.Lock, process-safe via the store's file lock
    """

    def __init__(self, store: LedgerStore, clock: Callable[[], datetime] = _utcnow):
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()

    def redeem(self, code: str, asset_id: str) -> RedemptionCode:
        """
        Consume a redemption code.

        Args:
            code: The redemption code, matched exactly
            asset_id: Sanitized asset name the code is being redeemed for

        Returns:
            The updated, used RedemptionCode

        Raises:
            ValueError: If code or asset_id is empty
            CodeNotFoundError: If the code is not in the ledger
            CodeAlreadyUsedError: If the code was already redeemed
            LedgerPersistenceError: If the ledger cannot be read or written
        """
        if not code or not asset_id:
            raise ValueError("code and asset_id are required")

        with self._lock, self._store.locked():
            records = self._store.load()

            record = records.get(code)
            if record is None:
                raise CodeNotFoundError("Redemption code is invalid")
            if record.used:
                raise CodeAlreadyUsedError("Redemption code has already been used")

            redeemed = replace(record, used=True, used_at=self._clock())
            records[code] = redeemed
            # records is a fresh copy from load(), so a failed save changes nothing
            self._store.save(records)

        logger.info(
            "Redemption code consumed",
            extra={"event_type": "ledger.code_redeemed", "asset": asset_id},
        )
        return redeemed

    def provision(self, codes: Iterable[str]) -> List[str]:
        """
        Add new, unused codes to the ledger.

        Codes already present are skipped, so a used code is never reset.

        Returns:
            The codes that were actually added, in input order
        """
        with self._lock, self._store.locked():
            records = self._store.load()
            added = []
            for code in codes:
                code = code.strip()
                if not code or code in records:
                    continue
                records[code] = RedemptionCode(code=code)
                added.append(code)

            if added:
                self._store.save(records)

        logger.info(
            "Provisioned redemption codes",
            extra={"event_type": "ledger.codes_provisioned", "count": len(added)},
        )
        return added

    def get(self, code: str) -> Optional[RedemptionCode]:
        with self._lock:
            return self._store.load().get(code)

    def list_codes(self) -> List[RedemptionCode]:
        with self._lock:
            return list(self._store.load().values())

    def stats(self) -> dict:
        """Get ledger statistics."""
        records = self.list_codes()
        used = sum(1 for r in records if r.used)
        return {"total": len(records), "used": used, "unused": len(records) - used}


# Singleton instance
_code_ledger: Optional[CodeLedger] = None


def get_code_ledger() -> CodeLedger:
    """Get the code ledger singleton."""
    global _code_ledger
    if _code_ledger is None:
        _code_ledger = CodeLedger(JsonFileLedgerStore(get_settings().CODES_FILE))
    return _code_ledger


def reset_code_ledger():
    """Reset the code ledger singleton (for testing)."""
    global _code_ledger
    _code_ledger = None
