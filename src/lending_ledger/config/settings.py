"""Configuration settings for the lending ledger engine."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Ledger backend
    ledger_api_url: str = Field(
        default="http://localhost:3000", validation_alias="LEDGER_API_URL"
    )
    ledger_api_token: SecretStr = Field(..., validation_alias="LEDGER_API_TOKEN")
    ledger_timeout: float = Field(default=30.0, validation_alias="LEDGER_TIMEOUT")
    ledger_max_retries: int = Field(default=3, validation_alias="LEDGER_MAX_RETRIES")

    # Evidence object storage (unset disables uploads)
    evidence_upload_url: str | None = Field(
        default=None, validation_alias="EVIDENCE_UPLOAD_URL"
    )
    evidence_folder: str = Field(
        default="discrepancies", validation_alias="EVIDENCE_FOLDER"
    )

    # Callers convert business-local days to UTC with this offset
    business_utc_offset_hours: int = Field(
        default=-6, validation_alias="BUSINESS_UTC_OFFSET_HOURS"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
