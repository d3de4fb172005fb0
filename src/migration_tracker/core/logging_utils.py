"""Structured logging utilities for the migration tracker.

A single **structlog** pipeline produces either colourful console logs (local
dev) or JSON (production/CI).

Usage
-----
```python
from migration_tracker.core.logging_utils import get_logger

logger = get_logger(__name__)
logger.info("status_applied", status="burn_confirmed")
```
"""

from __future__ import annotations

import logging
import os
import sys
from enum import Enum
from typing import Any, MutableMapping, cast

import structlog

# ---------------------------------------------------------------------------
# Configuration helpers
# ---------------------------------------------------------------------------


def _enum_values(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Render enum fields (statuses, steps, error types) as their wire values."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def init_logger(level: str | int = "INFO", json: bool | None = None) -> None:  # noqa: D401
    """Initialise structlog + stdlib logging.

    This should be idempotent; calling it a second time is a no-op.

    Args:
        level: Log level name or numeric value.
        json: If *True* force JSON logs, if *False* force colourful console
            logs, if *None* auto-detect (JSON in CI, console otherwise).
    """
    if getattr(init_logger, "_configured", False):
        return

    if json is None:
        json = (
            bool(os.environ.get("CI"))
            or os.environ.get("LOG_JSON", "false").lower() == "true"
        )

    # Map string levels to numeric constants provided by ``logging``.
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )

    if json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,  # migration_id etc.
        _enum_values,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    init_logger._configured = True  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_logger(name: str | None = None) -> structlog.BoundLogger:  # noqa: D401 – simple accessor
    """Return a structured :class:`structlog.BoundLogger`.

    Parameters
    ----------
    name:
        Optional module/qualifier. When provided it is bound as the *logger
        name* field so downstream log aggregation can filter on it.
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return cast("structlog.BoundLogger", logger)


def bind_log_context(**kwargs: str) -> None:  # noqa: D401
    """Bind arbitrary logging context using structlog's contextvars backend.

    Values bound inside a coroutine before it spawns the poll task are copied
    into that task, so every poll log line carries the ``migration_id``.
    """

    from structlog.contextvars import bind_contextvars

    if kwargs:
        bind_contextvars(**kwargs)


def unbind_log_context(*keys: str) -> None:
    """Drop *keys* from the logging context (e.g. ``migration_id`` on reset)."""

    from structlog.contextvars import unbind_contextvars

    if keys:
        unbind_contextvars(*keys)
