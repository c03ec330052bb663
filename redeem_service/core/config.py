"""
Redeem Download Service configuration.

All deployment-specific values (listen port, asset directory, ledger file,
token TTL) come from the environment or a `.env` file.
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Redeem Download Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"

    # Network settings
    HOST: str = "0.0.0.0"
    PORT: int = 10000

    # Storage
    ASSET_DIR: Path = Path("./paid/img_paid")
    CODES_FILE: Path = Path("./codes.json")

    # Access tokens
    TOKEN_TTL_SECONDS: int = 3600
    # Background purge of expired tokens, 0 disables the task
    TOKEN_SWEEP_INTERVAL_SECONDS: int = 60

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Audit trail
    AUDIT_ENABLED: bool = True
    AUDIT_LOG_DIR: Path = Path("./logs")
    AUDIT_LOG_FILE: str = "redeem_audit.jsonl"

    @field_validator("TOKEN_TTL_SECONDS")
    @classmethod
    def validate_token_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("TOKEN_TTL_SECONDS must be positive")
        return v

    @field_validator("TOKEN_SWEEP_INTERVAL_SECONDS")
    @classmethod
    def validate_sweep_interval(cls, v: int) -> int:
        if v < 0:
            raise ValueError("TOKEN_SWEEP_INTERVAL_SECONDS cannot be negative")
        return v

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> List[str]:
        """Parse CORS_ORIGINS from JSON string or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # If not valid JSON, treat as comma-separated
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def audit_log_path(self) -> Path:
        return self.AUDIT_LOG_DIR / self.AUDIT_LOG_FILE

    @property
    def expose_docs(self) -> bool:
        return self.ENVIRONMENT != "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
