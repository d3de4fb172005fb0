"""In-memory holder for the single tracked migration session.

The store owns one immutable :class:`MigrationSession` snapshot.  ``set``
swaps in a shallow-merged copy and notifies observers; ``reset`` swaps in a
fresh session (optionally seeded) in one step, so observers never see a
half-reset state.  The store does no I/O and never raises.
"""

from __future__ import annotations

from typing import Any, Callable, List

from migration_tracker.core.logging_utils import get_logger
from migration_tracker.models import MigrationSession

__all__ = ["SessionObserver", "SessionStore"]

logger = get_logger(__name__)

SessionObserver = Callable[[MigrationSession], None]


class SessionStore:
    """State container for one engine instance."""

    def __init__(self) -> None:
        self._session = MigrationSession()
        self._observers: List[SessionObserver] = []

    def get(self) -> MigrationSession:
        """Return the current snapshot."""
        return self._session

    def set(self, **changes: Any) -> MigrationSession:
        """Shallow-merge *changes* into the session and notify observers."""
        if not changes:
            return self._session
        self._session = self._session.model_copy(update=changes)
        self._notify()
        return self._session

    def reset(self, **seed: Any) -> MigrationSession:
        """Replace the session with the initial one, plus optional *seed* fields."""
        session = MigrationSession()
        if seed:
            session = session.model_copy(update=seed)
        self._session = session
        self._notify()
        return self._session

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Register *observer*; return a callable that unregisters it."""
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def _notify(self) -> None:
        snapshot = self._session
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:  # noqa: BLE001 – observers must not break the store
                logger.exception("session_observer_failed", observer=repr(observer))
