"""
Runtime settings, read from ``SSLVRFY_*`` environment variables or a .env file.

The hostname and port come from the command line; everything else that
tunes a run lives here.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class VerifierSettings(BaseSettings):
    """
    Settings for one sslvrfy run.

    SSLVRFY_TIMEOUT_SECONDS   bounds the TCP connect and TLS handshake
    SSLVRFY_CA_FILE           PEM bundle replacing the system trust store
    SSLVRFY_LOG_LEVEL         structlog filtering level (stderr)
    SSLVRFY_LEGACY_VALIDATED_PRODUCT
                              compute isValidated as the product of the
                              -1/0/1 encodings instead of a three-valued AND
    """

    model_config = SettingsConfigDict(
        env_prefix="SSLVRFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timeout_seconds: float = Field(default=5.0, gt=0, description="Connect and handshake timeout")
    ca_file: Optional[Path] = Field(default=None, description="PEM bundle of trusted roots")
    log_level: str = Field(default="WARNING")
    legacy_validated_product: bool = Field(default=False)

    @field_validator("ca_file")
    @classmethod
    def validate_ca_file(cls, value: Optional[Path]) -> Optional[Path]:
        if value is not None and not value.is_file():
            raise ValueError(f"CA bundle does not exist: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level
