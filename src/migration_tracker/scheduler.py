"""Submit a migration and poll it until it reaches a terminal status.

One :class:`PollScheduler` drives one session store.  The poll loop runs as
an asyncio task with exactly one request in flight at a time.  Each loop run
carries a *generation* number; :meth:`PollScheduler.stop_tracking` bumps the
generation and wakes the sleeping loop, so a response that arrives after the
stop sees a stale generation and is dropped without touching the store.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import ValidationError

from migration_tracker.classifier import classify_error
from migration_tracker.configuration import TrackerConfiguration
from migration_tracker.core.logging_utils import (
    bind_log_context,
    get_logger,
    unbind_log_context,
)
from migration_tracker.exceptions import MigrationInFlightError, TransportError
from migration_tracker.models import (
    ErrorDisplay,
    ErrorType,
    MigrationFormData,
    MigrationRequest,
    MigrationStatus,
    MigrationStep,
    SubmitResponse,
    TransactionData,
)
from migration_tracker.reconciler import (
    estimate_progress,
    merge_progress,
    reconcile,
    status_rank,
)
from migration_tracker.store import SessionStore
from migration_tracker.transport import MigrationTransport
from migration_tracker.utils import format_token_amount, generate_migration_id

__all__ = ["PollScheduler"]

logger = get_logger(__name__)

FormInput = Union[MigrationFormData, Mapping[str, Any]]


class PollScheduler:
    """Drives submit → poll-until-terminal for a single session store."""

    def __init__(
        self,
        store: SessionStore,
        transport: MigrationTransport,
        config: Optional[TrackerConfiguration] = None,
        *,
        id_factory: Callable[[], str] = generate_migration_id,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = store
        self._transport = transport
        self._config = config or TrackerConfiguration()
        self._id_factory = id_factory
        self._clock = clock

        self._generation = 0
        self._attempts = 0
        self._polls = 0
        self._submission: Optional[str] = None
        self._tracking_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def attempts(self) -> int:
        """Consecutive failed status polls in the current (or last) loop run."""
        return self._attempts

    @property
    def polls(self) -> int:
        """Status polls issued by the current (or last) loop run."""
        return self._polls

    @property
    def tracking_id(self) -> Optional[str]:
        return self._tracking_id

    @property
    def in_flight(self) -> bool:
        """True while a submission or a poll loop is active."""
        return self._submission is not None or self._store.get().polling_active

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    async def submit(self, form_data: FormInput) -> str:
        """Create a migration and start tracking it.

        Returns the new correlation id.  Failures are recorded on the session
        (``status = error``) rather than raised; only a concurrent submission
        raises :class:`MigrationInFlightError`.
        """
        if self.in_flight:
            raise MigrationInFlightError(self._tracking_id)

        self.stop_tracking()
        migration_id = self._id_factory()
        self._submission = migration_id
        try:
            bind_log_context(migration_id=migration_id)

            try:
                form = self._validate_form(form_data)
            except ValidationError as exc:
                first = exc.errors()[0] if exc.errors() else {}
                message = str(first.get("msg", "Invalid migration form")).removeprefix("Value error, ")
                logger.info("submission_rejected", reason=message)
                self._store.reset(migration_id=migration_id)
                self._fail(
                    ErrorDisplay(
                        type=ErrorType.VALIDATION,
                        message=message,
                        details=str(exc),
                        retryable=False,
                    )
                )
                return migration_id

            self._store.reset(
                migration_id=migration_id,
                form_data=form,
                step=MigrationStep.PROCESSING,
            )
            request = MigrationRequest(
                account_id=form.account_id,
                token_address=form.token_address,
                amount=format_token_amount(form.amount),
                solana_wallet_address=form.solana_wallet_address,
                vesting_duration_days=form.vesting_duration_days,
                bridge_id=migration_id,
                chain_id=self._config.chain_id,
                start_immediately=self._config.start_immediately,
            )

            logger.info("submission_started", amount=request.amount)
            try:
                raw = await self._transport.submit(request)
            except TransportError as exc:
                raw = None
                failure = exc
            else:
                failure = None

            if self._submission != migration_id:
                # Stopped or reset while the create request was in flight.
                logger.info("submission_discarded_after_stop")
                return migration_id
            if failure is not None:
                self._fail_submission(failure)
                return migration_id

            try:
                response = SubmitResponse.model_validate(raw)
            except ValidationError:
                response = SubmitResponse(success=False, error="Malformed submission response")
            if not response.success:
                logger.warning("submission_failed", message=response.error)
                self._fail(classify_error(response.error or "Migration request failed"))
                return migration_id

            if response.burn_transaction is not None:
                self._store.set(transaction=response.burn_transaction)
            logger.info("submission_accepted")
        finally:
            if self._submission == migration_id:
                self._submission = None

        self.start_tracking(migration_id)
        return migration_id

    def _validate_form(self, form_data: FormInput) -> MigrationFormData:
        if isinstance(form_data, MigrationFormData):
            return form_data
        data = dict(form_data)
        if "vestingDurationDays" not in data and "vesting_duration_days" not in data:
            data["vesting_duration_days"] = self._config.default_vesting_duration
        return MigrationFormData.model_validate(data)

    def _fail_submission(self, exc: TransportError) -> None:
        payload = exc.payload or {}
        original = payload.get("originalMessage")
        logger.warning(
            "submission_failed",
            message=exc.message,
            status_class=exc.status_class,
            status_code=exc.status_code,
        )
        error = classify_error(
            exc.message,
            payload=payload,
            status_class=exc.status_class,
            details=original if isinstance(original, str) else None,
        )
        tx_hash = payload.get("transactionHash") or payload.get("txHash")
        burn = payload.get("burnTransaction")
        if isinstance(burn, dict):
            try:
                self._store.set(transaction=TransactionData.model_validate(burn))
            except ValidationError:
                logger.debug("burn_transaction_unreadable")
        elif isinstance(tx_hash, str):
            self._store.set(transaction=TransactionData(hash=tx_hash, status="pending"))
        self._fail(error)

    def _fail(self, error: ErrorDisplay) -> None:
        self._store.set(
            status=MigrationStatus.ERROR,
            step=MigrationStep.ERROR,
            error=error,
            polling_active=False,
        )

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------
    def start_tracking(self, migration_id: str) -> None:
        """Begin polling *migration_id*; a no-op if it is already being polled.

        Must be called from within a running event loop.
        """
        if self._store.get().polling_active and self._tracking_id == migration_id:
            return

        self.stop_tracking()
        self._generation += 1
        self._attempts = 0
        self._polls = 0
        self._tracking_id = migration_id
        self._wake = asyncio.Event()
        self._store.set(polling_active=True)
        self._task = asyncio.get_running_loop().create_task(
            self._poll_loop(migration_id, self._generation, self._wake),
            name=f"migration-poll-{migration_id}",
        )

    def stop_tracking(self) -> None:
        """Stop polling.  Safe at any time; in-flight responses are discarded."""
        self._generation += 1
        self._submission = None
        if self._wake is not None:
            self._wake.set()
        if self._store.get().polling_active:
            self._store.set(polling_active=False)

    def reset(self) -> None:
        """Stop tracking and restore the initial session."""
        self.stop_tracking()
        self._tracking_id = None
        self._attempts = 0
        self._polls = 0
        self._store.reset()
        unbind_log_context("migration_id")

    async def join(self) -> None:
        """Wait until the current poll loop task has exited."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def aclose(self) -> None:
        """Stop tracking and cancel the loop task, including any request in flight."""
        self.stop_tracking()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

    # ------------------------------------------------------------------
    # Poll loop
    # ------------------------------------------------------------------
    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self._store.get().polling_active

    async def _sleep(self, wake: asyncio.Event) -> None:
        try:
            await asyncio.wait_for(wake.wait(), timeout=self._config.poll_interval)
        except asyncio.TimeoutError:
            pass

    async def _poll_loop(self, migration_id: str, generation: int, wake: asyncio.Event) -> None:
        try:
            await self._run_loop(migration_id, generation, wake)
        except Exception as exc:  # noqa: BLE001 – surfaced on the session below
            logger.exception("poll_loop_crashed")
            if generation == self._generation:
                self._fail(classify_error(str(exc) or type(exc).__name__))

    async def _run_loop(self, migration_id: str, generation: int, wake: asyncio.Event) -> None:
        logger.info(
            "polling_started",
            max_attempts=self._config.max_poll_attempts,
            max_status_polls=self._config.max_status_polls,
        )
        while self._is_current(generation):
            self._polls += 1
            try:
                raw = await self._transport.get_status(migration_id)
            except TransportError as exc:
                if not self._is_current(generation):
                    logger.debug("stale_poll_failure_discarded")
                    return
                self._attempts += 1
                logger.warning(
                    "poll_failed",
                    attempt=self._attempts,
                    message=exc.message,
                    status_class=exc.status_class,
                )
                if self._attempts >= self._config.max_poll_attempts:
                    self._time_out(
                        f"Migration status polling timed out after {self._attempts} "
                        "failed attempts"
                    )
                    return
            else:
                if not self._is_current(generation):
                    logger.debug("stale_poll_response_discarded")
                    return
                self._attempts = 0
                if self._apply_status(raw):
                    return
                await self._refresh_progress(migration_id, generation)

            if not self._is_current(generation):
                return
            limit = self._config.max_status_polls
            if limit is not None and self._polls >= limit:
                self._time_out(
                    f"Migration did not finish after {self._polls} status checks"
                )
                return
            await self._sleep(wake)
        logger.debug("polling_stopped")

    def _apply_status(self, raw: Any) -> bool:
        """Fold *raw* into the store; return True when polling must stop."""
        previous = self._store.get().status
        result = reconcile(self._store.get(), raw, config=self._config)
        if result.changes:
            self._store.set(**result.changes)
        current = self._store.get().status
        if current != previous:
            logger.info("status_changed", previous=previous, status=current)
        if result.terminal:
            if self._store.get().polling_active:
                self._store.set(polling_active=False)
            logger.info("polling_finished", reason=result.reason, polls=self._polls)
        return result.terminal

    async def _refresh_progress(self, migration_id: str, generation: int) -> None:
        """Best-effort progress fetch; failures leave prior values intact."""
        if status_rank(self._store.get().status) < status_rank(MigrationStatus.VESTING_STARTED):
            return
        try:
            raw = await self._transport.get_progress(migration_id)
            if not self._is_current(generation):
                return
            changes = merge_progress(self._store.get(), raw)
        except Exception as exc:  # noqa: BLE001 – progress is best effort
            logger.debug("progress_fetch_failed", error=str(exc), error_type=type(exc).__name__)
            if self._is_current(generation) and self._store.get().progress is None:
                estimate = estimate_progress(self._store.get().vesting, self._clock())
                if estimate is not None:
                    self._store.set(progress=estimate)
            return
        if changes:
            self._store.set(**changes)

    def _time_out(self, message: str) -> None:
        logger.warning("polling_timed_out", attempts=self._attempts, polls=self._polls)
        self._fail(ErrorDisplay(type=ErrorType.NETWORK, message=message, retryable=True))
