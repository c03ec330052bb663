"""
Unit tests for the audit logger.
"""
import json

import pytest

from redeem_service.audit.logger import AuditAction, AuditEvent, AuditLogger, hash_secret


def _read_events(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestAuditEvent:
    """Tests for event serialization."""

    def test_none_values_are_dropped(self):
        event = AuditEvent.create(
            action=AuditAction.REDEEM_DENIED,
            endpoint="/redeem",
            allow=False,
            correlation_id="abc",
        )

        data = json.loads(event.to_json())

        assert data["action"] == "REDEEM_DENIED"
        assert "asset" not in data
        assert "code_hash" not in data

    def test_hash_secret(self):
        assert hash_secret("X1") == hash_secret("X1")
        assert hash_secret("X1") != "X1"
        assert len(hash_secret("X1")) == 64
        assert hash_secret("") is None


class TestAuditLogger:
    """Tests for writing the audit trail."""

    @pytest.mark.asyncio
    async def test_redeem_is_logged_without_raw_code(self, tmp_path):
        path = tmp_path / "logs" / "audit.jsonl"
        audit = AuditLogger(log_path=path, enabled=True)

        await audit.log_redeem(
            correlation_id="c-1",
            allow=True,
            code="SECRET-CODE",
            asset="1.jpg",
            client_ip="10.0.0.1",
        )

        raw = path.read_text(encoding="utf-8")
        assert "SECRET-CODE" not in raw
        (event,) = _read_events(path)
        assert event["action"] == "REDEEM_ACCEPTED"
        assert event["code_hash"] == hash_secret("SECRET-CODE")
        assert event["asset"] == "1.jpg"

    @pytest.mark.asyncio
    async def test_download_is_logged_without_raw_token(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        audit = AuditLogger(log_path=path, enabled=True)

        await audit.log_download(
            correlation_id="c-2",
            allow=False,
            token="tok-123",
            asset="1.jpg",
            error_code="TOKEN_EXPIRED",
        )
        await audit.log_download(
            correlation_id="c-3",
            allow=True,
            token="tok-456",
            asset="1.jpg",
            bytes_sent=42,
        )

        assert "tok-123" not in path.read_text(encoding="utf-8")
        denied, served = _read_events(path)
        assert denied["action"] == "DOWNLOAD_DENIED"
        assert denied["error_code"] == "TOKEN_EXPIRED"
        assert served["action"] == "DOWNLOAD_SERVED"
        assert served["bytes_sent"] == 42

    @pytest.mark.asyncio
    async def test_disabled_logger_writes_nothing(self, tmp_path):
        path = tmp_path / "audit.jsonl"
        audit = AuditLogger(log_path=path, enabled=False)

        await audit.log_redeem(correlation_id="c-4", allow=False, code="X1")

        assert not path.exists()

    @pytest.mark.asyncio
    async def test_write_failure_does_not_raise(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        audit = AuditLogger(log_path=blocker / "audit.jsonl", enabled=True)

        await audit.log_redeem(correlation_id="c-5", allow=True, code="X1")
