"""Tracker configuration consumed by the engine.

The engine never reads the environment itself: entry points build a
:class:`TrackerConfiguration` from :mod:`migration_tracker.core.settings` (or
from a plain mapping in tests) and hand it to the engine.
"""

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from migration_tracker.core.settings import AppSettings, settings


@dataclass(kw_only=True)
class TrackerConfiguration:
    """Polling bounds (consecutive failures, optional total status checks) plus the chain/explorer details used to build links."""

    poll_interval: float = settings.poll_interval_seconds
    max_poll_attempts: int = settings.max_poll_attempts
    max_status_polls: Optional[int] = settings.max_status_polls
    chain_id: int = settings.base_chain_id
    start_immediately: bool = True
    default_vesting_duration: int = settings.default_vesting_duration
    base_explorer_url: str = settings.base_explorer_url
    solana_explorer_url: str = settings.solana_explorer_url
    solana_network: str = settings.solana_network

    def __post_init__(self) -> None:
        if self.poll_interval < 0:
            raise ValueError("poll_interval must be >= 0")
        if self.max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be >= 1")
        if self.max_status_polls is not None and self.max_status_polls < 1:
            raise ValueError("max_status_polls must be >= 1 when set")

    @classmethod
    def from_settings(cls, app_settings: Optional[AppSettings] = None) -> "TrackerConfiguration":
        """Create a configuration from validated application settings."""
        s = app_settings or settings
        return cls(
            poll_interval=s.poll_interval_seconds,
            max_poll_attempts=s.max_poll_attempts,
            max_status_polls=s.max_status_polls,
            chain_id=s.base_chain_id,
            default_vesting_duration=s.default_vesting_duration,
            base_explorer_url=s.base_explorer_url,
            solana_explorer_url=s.solana_explorer_url,
            solana_network=s.solana_network,
        )

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]] = None) -> "TrackerConfiguration":
        """Create a configuration from a mapping, ignoring unknown keys."""
        values = values or {}
        known = {f.name for f in fields(cls) if f.init}
        return cls(**{k: v for k, v in values.items() if k in known and v is not None})
