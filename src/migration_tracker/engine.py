"""Public entry point: one engine instance tracks one migration at a time.

Presentation code reads :attr:`MigrationEngine.session`, subscribes to
changes, and calls :meth:`submit`, :meth:`retry` or :meth:`reset`.  Each
engine owns its own store and scheduler, so several engines can coexist
without sharing state.

Usage::

    async with MigrationEngine() as engine:
        engine.subscribe(lambda s: print(s.status, s.step))
        await engine.submit(form)
        await engine.wait()
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Union

from migration_tracker.configuration import TrackerConfiguration
from migration_tracker.core.logging_utils import get_logger
from migration_tracker.exceptions import MigrationInFlightError
from migration_tracker.models import MigrationFormData, MigrationSession
from migration_tracker.scheduler import PollScheduler
from migration_tracker.store import SessionObserver, SessionStore
from migration_tracker.transport import HttpMigrationTransport, MigrationTransport

__all__ = ["MigrationEngine"]

logger = get_logger(__name__)


class MigrationEngine:
    """Store + scheduler + transport for a single tracked migration."""

    def __init__(
        self,
        transport: Optional[MigrationTransport] = None,
        config: Optional[TrackerConfiguration] = None,
        **scheduler_kwargs: Any,
    ) -> None:
        self.config = config or TrackerConfiguration.from_settings()
        self.transport: MigrationTransport = transport or HttpMigrationTransport()
        self.store = SessionStore()
        self.scheduler = PollScheduler(self.store, self.transport, self.config, **scheduler_kwargs)
        self._last_form: Optional[Union[MigrationFormData, Mapping[str, Any]]] = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def session(self) -> MigrationSession:
        """Current read-only snapshot."""
        return self.store.get()

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Call *observer* with every new snapshot; returns an unsubscribe callable."""
        return self.store.subscribe(observer)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def submit(self, form_data: Union[MigrationFormData, Mapping[str, Any]]) -> str:
        """Submit *form_data* and start tracking; returns the correlation id.

        Raises:
            MigrationInFlightError: a submission or poll loop is already active.
                The previously submitted form stays the one :meth:`retry` re-sends.
        """
        if self.scheduler.in_flight:
            raise MigrationInFlightError(self.scheduler.tracking_id)
        self._last_form = form_data
        return await self.scheduler.submit(form_data)

    async def retry(self) -> Optional[str]:
        """Re-submit the last form data.  Returns ``None`` if nothing was submitted yet.

        Any active submission or poll loop is stopped first; its late response
        is discarded.
        """
        if self._last_form is None:
            logger.info("retry_without_submission")
            return None
        self.scheduler.stop_tracking()
        return await self.scheduler.submit(self._last_form)

    def reset(self) -> None:
        """Stop tracking and start over with an empty session."""
        self.scheduler.reset()
        self._last_form = None

    async def wait(self) -> MigrationSession:
        """Wait for the current poll loop to exit; return the final snapshot."""
        await self.scheduler.join()
        return self.session

    # ------------------------------------------------------------------
    # Resource management
    # ------------------------------------------------------------------
    async def aclose(self) -> None:
        await self.scheduler.aclose()
        await self.transport.aclose()

    async def __aenter__(self) -> "MigrationEngine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
