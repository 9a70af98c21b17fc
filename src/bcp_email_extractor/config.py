"""Configuration management for the BCP email extractor.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.

The extraction core itself is pure and does not read settings; these values
drive the reference pipeline and the command-line interface.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bcp_email_extractor.models import TransactionTemplate

DEFAULT_TEMPLATE_ORDER: list[TransactionTemplate] = [
    TransactionTemplate.ACCOUNT_TRANSFER,
    TransactionTemplate.SERVICE_PAYMENT,
    TransactionTemplate.ONLINE_PURCHASE,
    TransactionTemplate.FEE_COMMISSION,
]


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the BCP_EXTRACTOR_ prefix (e.g., BCP_EXTRACTOR_LOG_LEVEL).
    """

    model_config = SettingsConfigDict(
        env_prefix="BCP_EXTRACTOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # Extraction Configuration
    min_confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description=(
            "Minimum confidence a transaction needs to be printed by the CLI. "
            "The extraction core never filters on confidence."
        ),
    )
    template_order: list[TransactionTemplate] = Field(
        default_factory=lambda: list(DEFAULT_TEMPLATE_ORDER),
        description=(
            "Fallback order in which template parsers are attempted when the "
            "subject/body anchors do not single out a template"
        ),
    )

    # Output Configuration
    json_indent: int | None = Field(
        default=None,
        description="Indentation used for JSON output (None prints compact lines)",
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
