"""Core utilities for the migration tracker.

Settings, structured logging and the retry helper live here so the engine
modules can import them without pulling in the HTTP adapter.
"""

from .logging_utils import bind_log_context, get_logger, init_logger, unbind_log_context
from .network_utils import async_retry
from .settings import AppSettings, settings

__all__ = [
    # Settings
    "AppSettings",
    "settings",
    # Logging
    "init_logger",
    "get_logger",
    "bind_log_context",
    "unbind_log_context",
    # Network
    "async_retry",
]
