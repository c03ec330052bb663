"""
Pytest fixtures for Redeem Download Service tests.
"""
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# 1x1 transparent PNG
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000a49444154789c63000100000500010d0a2db40000000049454e44ae426082"
)


class FakeClock:
    """Controllable clock for expiry tests."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 12, 24, 18, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


# =============================================================================
# Filesystem Fixtures
# =============================================================================

@pytest.fixture
def asset_dir(tmp_path) -> Path:
    """Asset directory with two images."""
    directory = tmp_path / "paid" / "img_paid"
    directory.mkdir(parents=True)
    (directory / "1.jpg").write_bytes(b"\xff\xd8\xff\xe0unwatermarked-1")
    (directory / "2.png").write_bytes(PNG_BYTES)
    return directory


def _write_ledger(path: Path, codes):
    """Write a ledger file from (code, used) pairs."""
    payload = {
        "codes": [
            {"code": code, "used": used, "usedAt": "2026-12-01T10:00:00+00:00" if used else None}
            for code, used in codes
        ]
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def _read_ledger(path: Path) -> dict:
    return {item["code"]: item for item in json.loads(path.read_text(encoding="utf-8"))["codes"]}


@pytest.fixture
def write_ledger():
    return _write_ledger


@pytest.fixture
def read_ledger():
    return _read_ledger


@pytest.fixture
def codes_file(tmp_path) -> Path:
    """Ledger with three unused codes and one used code."""
    path = tmp_path / "codes.json"
    _write_ledger(path, [("X1", False), ("X2", False), ("X3", False), ("SPENT", True)])
    return path


# =============================================================================
# Settings Override Fixture
# =============================================================================

@pytest.fixture
def mock_settings(asset_dir, codes_file, tmp_path, monkeypatch):
    """Point settings at the temporary files and reset singletons."""
    monkeypatch.setenv("ASSET_DIR", str(asset_dir))
    monkeypatch.setenv("CODES_FILE", str(codes_file))
    monkeypatch.setenv("TOKEN_TTL_SECONDS", "300")
    monkeypatch.setenv("TOKEN_SWEEP_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("AUDIT_LOG_DIR", str(tmp_path / "logs"))

    from redeem_service.audit import logger as audit_logger
    from redeem_service.core.config import get_settings
    from redeem_service.services import assets, ledger, redemption, tokens

    get_settings.cache_clear()
    audit_logger.reset_audit_logger()
    assets.reset_asset_store()
    ledger.reset_code_ledger()
    tokens.reset_token_store()
    redemption.reset_redemption_service()

    yield get_settings()

    get_settings.cache_clear()
    audit_logger.reset_audit_logger()
    assets.reset_asset_store()
    ledger.reset_code_ledger()
    tokens.reset_token_store()
    redemption.reset_redemption_service()
