"""Centralised configuration via Pydantic *BaseSettings*.

This module loads environment variables (and a local ``.env`` file if present)
exactly once at import-time, then makes the validated settings available as
``settings``.

Examples:
--------
>>> from migration_tracker.core.settings import settings
>>> settings.poll_interval_seconds
5.0
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Project-wide environment configuration."""

    # Backend ----------------------------------------------------------------
    api_base_url: str = "http://localhost:3000"
    auth_token: str | None = None
    submit_path: str = "/api/v2/bridge-aika"

    # Chains / explorers -----------------------------------------------------
    base_chain_id: int = 8453
    solana_network: str = "devnet"
    default_vesting_duration: int = 90
    base_explorer_url: str = "https://basescan.org"
    solana_explorer_url: str = "https://explorer.solana.com"

    # Polling ----------------------------------------------------------------
    poll_interval_seconds: float = 5.0
    max_poll_attempts: int = 60
    max_status_polls: int | None = None

    # Transport --------------------------------------------------------------
    request_timeout_seconds: float = 30.0
    request_retry_attempts: int = 2

    # General ----------------------------------------------------------------
    log_level: str | int = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # Generic validators
    # ------------------------------------------------------------------

    # Strip surrounding whitespace from *all* string fields so that accidental
    # newlines or spaces in .env files do not corrupt URLs or headers.
    @field_validator("*", mode="before")
    @classmethod
    def _strip_whitespace(cls, v):  # noqa: D401 – Pydantic validator
        if isinstance(v, str):
            return v.strip()
        return v

    @model_validator(mode="after")
    def _validate_values(self):  # noqa: D401
        problems: list[str] = []
        if self.auth_token and any(ch.isspace() for ch in self.auth_token):
            problems.append(
                "auth_token contains whitespace; remove spaces/newlines from the token"
            )
        if self.poll_interval_seconds < 0:
            problems.append("poll_interval_seconds must be >= 0")
        if self.max_poll_attempts < 1:
            problems.append("max_poll_attempts must be >= 1")
        if self.max_status_polls is not None and self.max_status_polls < 1:
            problems.append("max_status_polls must be >= 1 when set")
        if self.request_retry_attempts < 1:
            problems.append("request_retry_attempts must be >= 1")

        if problems:
            raise ValueError("; ".join(problems))

        return self

    # ------------------------------------------------------------------
    # Public helper
    # ------------------------------------------------------------------

    def validate_all(self) -> "AppSettings":
        """Return self after triggering full model validation.

        The settings object is validated at construction time already.  This
        helper exists so entry points can call ``settings.validate_all()`` to
        surface configuration errors before the first request goes out.
        """

        type(self).model_validate(self.model_dump())
        return self


@lru_cache
def _load_settings() -> AppSettings:
    """Load settings once, cache for subsequent imports."""
    return AppSettings()  # reads env + .env automatically


# Public, singleton-esque settings object
settings: AppSettings = _load_settings()
