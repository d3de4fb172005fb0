"""Exceptions raised across the migration tracker."""

from __future__ import annotations

from typing import Any, Literal

TransportStatusClass = Literal["none", "timeout", "4xx", "5xx"]


class MigrationInFlightError(RuntimeError):
    """Raised when a second submission starts while one is still being tracked."""

    def __init__(self, migration_id: str | None = None):  # noqa: D401, ANN001
        suffix = f" ({migration_id})" if migration_id else ""
        super().__init__(
            f"A migration is already in flight{suffix}. Stop tracking or reset the engine first."
        )
        self.migration_id = migration_id


class TransportError(RuntimeError):
    """Raised by a transport when a request cannot be completed.

    ``status_class`` is ``"none"`` when no response arrived at all (connection
    refused, DNS), ``"timeout"`` when the per-request timeout fired, and
    ``"4xx"``/``"5xx"`` for HTTP error responses.  ``payload`` holds the
    decoded error body when the server sent one.
    """

    def __init__(
        self,
        message: str,
        *,
        status_class: TransportStatusClass = "none",
        status_code: int | None = None,
        payload: dict[str, Any] | None = None,
    ):  # noqa: D401, ANN001
        super().__init__(message)
        self.message = message
        self.status_class = status_class
        self.status_code = status_code
        self.payload = payload
