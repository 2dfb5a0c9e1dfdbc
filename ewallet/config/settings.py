"""
Configuration Management for the E-Wallet Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Fee constants, storage locations and password hashing cost are
validated once at startup instead of being scattered through the ledger.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Fee schedule and balance rules for the ledger engine."""

    model_config = SettingsConfigDict(
        env_prefix="WALLET_",
        extra="ignore"
    )

    min_fee: Decimal = Field(
        default=Decimal("10"),
        ge=0,
        description="Minimum fee charged per transaction (currency units)"
    )
    fee_rate: Decimal = Field(
        default=Decimal("0.015"),
        ge=0,
        le=1,
        description="Proportional fee applied to the transaction amount"
    )
    allow_overdraft: bool = Field(
        default=True,
        description="Allow a send to drive the balance below zero"
    )
    currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="ISO currency code used for display"
    )


class StorageSettings(BaseSettings):
    """Local persistence locations."""

    model_config = SettingsConfigDict(
        env_prefix="WALLET_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path(".wallet/data"),
        description="Directory holding the key-value store documents"
    )
    secrets_dir: Path = Field(
        default=Path(".wallet/secrets"),
        description="Directory holding per-user secrets (kept apart from data)"
    )

    @field_validator('secrets_dir')
    @classmethod
    def validate_secrets_dir(cls, v: Path, info) -> Path:
        """Secrets must not share the data directory."""
        data_dir = info.data.get("data_dir")
        if data_dir is not None and Path(v).resolve() == Path(data_dir).resolve():
            raise ValueError("secrets_dir must differ from data_dir")
        return v


class SecuritySettings(BaseSettings):
    """Password handling configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WALLET_SECURITY_",
        extra="ignore"
    )

    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=16,
        description="bcrypt cost factor for stored password hashes"
    )
    min_password_length: int = Field(
        default=6,
        ge=1,
        description="Minimum password length enforced before signup"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    debug_mode: bool = Field(
        default=False,
        description="Force DEBUG logging regardless of log_level"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for every section that failed to load.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "storage", "security", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
