"""
Unit tests for settings parsing.
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from redeem_service.core.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, monkeypatch):
        for name in ("PORT", "TOKEN_TTL_SECONDS", "ASSET_DIR", "CODES_FILE", "CORS_ORIGINS"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.PORT == 10000
        assert settings.TOKEN_TTL_SECONDS == 3600
        assert settings.ASSET_DIR == Path("./paid/img_paid")
        assert settings.CODES_FILE == Path("./codes.json")
        assert settings.CORS_ORIGINS == ["*"]

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("token_ttl_seconds", "120")

        settings = Settings(_env_file=None)

        assert settings.PORT == 8080
        assert settings.TOKEN_TTL_SECONDS == 120

    def test_cors_origins_comma_separated(self):
        settings = Settings(_env_file=None, CORS_ORIGINS="https://a.example, https://b.example")

        assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]

    def test_cors_origins_json(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", '["https://a.example"]')

        assert Settings(_env_file=None).CORS_ORIGINS == ["https://a.example"]

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_token_ttl_must_be_positive(self, ttl):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, TOKEN_TTL_SECONDS=ttl)

    def test_sweep_interval_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, TOKEN_SWEEP_INTERVAL_SECONDS=-1)

    def test_log_level_is_normalized(self):
        assert Settings(_env_file=None, LOG_LEVEL=" debug ").LOG_LEVEL == "DEBUG"

    def test_derived_properties(self, tmp_path):
        settings = Settings(_env_file=None, AUDIT_LOG_DIR=tmp_path, ENVIRONMENT="production")

        assert settings.audit_log_path == tmp_path / "redeem_audit.jsonl"
        assert settings.expose_docs is False
