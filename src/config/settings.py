"""
Configuration Management for the Finance Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every path the ledger touches on disk and every tunable of the key
generator is declared (and validated) in one place.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Flat-file storage layout."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding account records and the user index"
    )
    users_file: str = Field(
        default="users.txt",
        min_length=1,
        description="Name of the user index file inside data_dir"
    )
    record_suffix: str = Field(
        default=".txt",
        description="Suffix appended to the username to form a record file name"
    )
    reports_dir: Path = Field(
        default=Path("reports"),
        description="Directory exported reports are written to"
    )
    create_dirs: bool = Field(
        default=True,
        description="Create data_dir / reports_dir on first use"
    )

    @property
    def users_path(self) -> Path:
        """Full path of the user index file."""
        return self.data_dir / self.users_file

    def record_path(self, username: str) -> Path:
        """Full path of the record file for a username."""
        return self.data_dir / f"{username}{self.record_suffix}"


class CipherSettings(BaseSettings):
    """Account key generation parameters."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_CIPHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    key_min: int = Field(
        default=11,
        ge=0,
        description="Lower bound of the integer range key bytes are drawn from"
    )
    key_max: int = Field(
        default=1_000_000,
        ge=1,
        description="Upper bound of the integer range key bytes are drawn from"
    )

    @model_validator(mode='after')
    def validate_range(self) -> 'CipherSettings':
        """The range must hold more than one value."""
        if self.key_max <= self.key_min:
            raise ValueError("key_max must be greater than key_min")
        return self


class AuditSettings(BaseSettings):
    """Audit logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_AUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    enabled: bool = Field(
        default=True,
        description="Emit audit events for session operations"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional JSON-lines file audit events are appended to"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logging"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Only accept standard logging level names."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.strip().upper()
        if level not in allowed:
            raise ValueError(f"Unsupported log level: {v}. Allowed: {sorted(allowed)}")
        return level


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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def cipher(self) -> CipherSettings:
        return CipherSettings()

    @property
    def audit(self) -> AuditSettings:
        return AuditSettings()


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

    Returns a dict of {setting_name: is_valid}, with a
    "<name>_error" entry for each section that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "cipher", "audit"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
