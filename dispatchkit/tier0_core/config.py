"""
dispatchkit.tier0_core.config
──────────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic and validated at startup.

The config object is read-only once built: the permission gate and the
dispatcher receive it at construction and never mutate it.

Stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dispatchkit.tier0_core.errors import ConfigurationError


class DispatchConfig(BaseSettings):
    """
    Deployment-level dispatch settings. Fields may be passed by name in code
    (``DispatchConfig(enforce_permissions=False)``) or set via the aliased
    environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    # ── Permissions ───────────────────────────────────────────────────────────
    enforce_permissions: bool = Field(default=True, alias="DISPATCH_PERMISSIONS")
    permissions_header: str = Field(
        default="X-Sandstorm-Permissions",
        alias="DISPATCH_PERMISSIONS_HEADER",
    )

    # ── Forms ─────────────────────────────────────────────────────────────────
    # Bytes of an uploaded file kept in memory before spilling to a temp file.
    max_form_memory: int = Field(default=512 * 1024, alias="DISPATCH_MAX_FORM_MEMORY")

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="DISPATCH_LOG_LEVEL")
    log_format: str = Field(default="json", alias="DISPATCH_LOG_FORMAT")

    @field_validator("max_form_memory")
    @classmethod
    def validate_max_form_memory(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_form_memory must be >= 0, got {v}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = {"json", "console"}
        if v.lower() not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v.lower()


@lru_cache(maxsize=1)
def get_config() -> DispatchConfig:
    """
    Return the process config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    try:
        return DispatchConfig()
    except ValidationError as exc:
        raise ConfigurationError(f"invalid dispatch configuration: {exc}") from exc


def _reset_config() -> None:
    """For tests — clear the config cache."""
    get_config.cache_clear()


__all__ = ["DispatchConfig", "get_config"]
