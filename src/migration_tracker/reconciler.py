"""Fold polled backend payloads into the local session model.

Everything here is pure: functions take the current snapshot plus a raw
payload and return the field changes to apply.  The scheduler decides when
to apply them.

Status ordering::

    idle < pending_burn < burn_confirmed < vesting_started < completed

A payload never moves the status backwards.  An older status arriving late
is logged and ignored.  ``*_failed`` payloads jump straight to ``error``,
except ``burn_failed`` once the burn is already confirmed, which contradicts
what the backend reported earlier and is ignored as well.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from migration_tracker.classifier import classify_error
from migration_tracker.configuration import TrackerConfiguration
from migration_tracker.core.logging_utils import get_logger
from migration_tracker.models import (
    ErrorDisplay,
    ErrorType,
    MigrationSession,
    MigrationStatus,
    MigrationStep,
    ProgressData,
    ProgressPayload,
    RawStatus,
    StatusPayload,
    TransactionData,
    VestingData,
)
from migration_tracker.utils import clamp_fraction, get_explorer_url

__all__ = [
    "STATUS_ORDER",
    "ReconcileResult",
    "estimate_progress",
    "merge_progress",
    "protocol_error",
    "reconcile",
    "status_rank",
]

logger = get_logger(__name__)

STATUS_ORDER: Dict[MigrationStatus, int] = {
    MigrationStatus.IDLE: 0,
    MigrationStatus.PENDING_BURN: 1,
    MigrationStatus.BURN_CONFIRMED: 2,
    MigrationStatus.VESTING_STARTED: 3,
    MigrationStatus.COMPLETED: 4,
}

_TARGET_STATUS: Dict[RawStatus, MigrationStatus] = {
    RawStatus.PENDING_BURN: MigrationStatus.PENDING_BURN,
    RawStatus.BURN_CONFIRMED: MigrationStatus.BURN_CONFIRMED,
    RawStatus.VESTING_STARTED: MigrationStatus.VESTING_STARTED,
    RawStatus.COMPLETED: MigrationStatus.COMPLETED,
}

_FAILED_STATUS: Dict[RawStatus, ErrorType] = {
    RawStatus.BURN_FAILED: ErrorType.TRANSACTION,
    RawStatus.VESTING_FAILED: ErrorType.VESTING,
}

_FAILED_FALLBACK_MESSAGE = {
    RawStatus.BURN_FAILED: "Token burn failed",
    RawStatus.VESTING_FAILED: "Vesting setup failed",
}


def status_rank(status: MigrationStatus) -> int:
    """Return the position of *status* in the forward ordering (``error`` is -1)."""
    return STATUS_ORDER.get(status, -1)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of folding one payload into the session.

    Attributes
    ----------
    changes
        Field updates for :meth:`SessionStore.set` (empty when nothing moved).
    terminal
        True when polling must stop after applying ``changes``.
    ignored
        True when the payload was discarded (out of order, after terminal).
    reason
        Short machine-friendly explanation for ignored/terminal outcomes.
    """

    changes: Dict[str, Any] = field(default_factory=dict)
    terminal: bool = False
    ignored: bool = False
    reason: Optional[str] = None


def protocol_error(message: str) -> ErrorDisplay:
    """Error surfaced when the backend payload cannot be trusted."""
    return ErrorDisplay(
        type=ErrorType.NETWORK,
        message=message,
        details="protocol",
        retryable=True,
    )


def _protocol_violation(message: str) -> ReconcileResult:
    return ReconcileResult(
        changes={
            "status": MigrationStatus.ERROR,
            "step": MigrationStep.ERROR,
            "error": protocol_error(message),
            "polling_active": False,
        },
        terminal=True,
        reason="protocol",
    )


def _merge(previous, incoming):
    """Overlay the non-null fields of *incoming* onto *previous*."""
    if incoming is None:
        return previous
    if previous is None:
        return incoming
    return previous.model_copy(update=incoming.model_dump(exclude_none=True))


def _with_transaction(
    session: MigrationSession,
    incoming: Optional[TransactionData],
    confirmation: str,
    config: TrackerConfiguration,
) -> TransactionData:
    merged = _merge(session.transaction, incoming) or TransactionData()
    update: Dict[str, Any] = {"status": confirmation}
    if merged.hash and not merged.explorer_url:
        update["explorer_url"] = get_explorer_url(
            merged.hash, "base", base_explorer_url=config.base_explorer_url
        )
    return merged.model_copy(update=update)


def _with_vesting(
    session: MigrationSession,
    incoming: Optional[VestingData],
    config: TrackerConfiguration,
) -> Optional[VestingData]:
    merged = _merge(session.vesting, incoming)
    if merged is None:
        return None
    if merged.contract_address and not merged.explorer_url:
        merged = merged.model_copy(
            update={
                "explorer_url": get_explorer_url(
                    merged.contract_address,
                    "solana",
                    kind="address",
                    solana_explorer_url=config.solana_explorer_url,
                    solana_network=config.solana_network,
                )
            }
        )
    return merged


def _only_changed(session: MigrationSession, changes: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in changes.items() if getattr(session, k) != v}


def reconcile(
    session: MigrationSession,
    raw: Union[Mapping[str, Any], StatusPayload],
    *,
    config: Optional[TrackerConfiguration] = None,
) -> ReconcileResult:
    """Fold one status payload into *session*.

    Args:
        session: Current snapshot.
        raw: Decoded body of the status endpoint (or an already parsed payload).
        config: Source of explorer roots for links the backend leaves out.

    Returns:
        The changes to apply and whether polling must stop.
    """
    config = config or TrackerConfiguration()

    if session.is_terminal:
        return ReconcileResult(ignored=True, terminal=True, reason="already_terminal")

    if isinstance(raw, StatusPayload):
        payload = raw
    else:
        try:
            payload = StatusPayload.model_validate(raw)
        except ValidationError as exc:
            logger.warning("status_payload_malformed", errors=exc.error_count())
            return _protocol_violation("Malformed status payload received from server")

    if payload.status is None:
        logger.warning("status_payload_missing_status")
        return _protocol_violation("Status payload is missing the status field")

    if payload.status in _FAILED_STATUS:
        return _reconcile_failure(session, payload, config)

    target = _TARGET_STATUS[payload.status]
    if status_rank(target) < status_rank(session.status):
        logger.info(
            "status_payload_out_of_order",
            current=session.status.value,
            received=payload.status.value,
        )
        return ReconcileResult(ignored=True, reason="out_of_order")

    changes: Dict[str, Any] = {"status": target}
    if target is MigrationStatus.COMPLETED:
        confirmation = "completed"
    elif target is MigrationStatus.PENDING_BURN:
        confirmation = "pending"
    else:
        confirmation = "confirmed"
    changes["transaction"] = _with_transaction(session, payload.transaction, confirmation, config)

    if status_rank(target) >= status_rank(MigrationStatus.VESTING_STARTED):
        vesting = _with_vesting(session, payload.vesting, config)
        if vesting is not None:
            changes["vesting"] = vesting

    terminal = target is MigrationStatus.COMPLETED
    if terminal:
        changes["step"] = MigrationStep.COMPLETED
        changes["polling_active"] = False
    else:
        changes["step"] = MigrationStep.PROCESSING

    return ReconcileResult(
        changes=_only_changed(session, changes),
        terminal=terminal,
        reason="completed" if terminal else None,
    )


def _reconcile_failure(
    session: MigrationSession,
    payload: StatusPayload,
    config: TrackerConfiguration,
) -> ReconcileResult:
    if payload.status is RawStatus.BURN_FAILED and status_rank(session.status) >= status_rank(
        MigrationStatus.BURN_CONFIRMED
    ):
        logger.info("burn_failed_after_confirmation_ignored", current=session.status.value)
        return ReconcileResult(ignored=True, reason="out_of_order")

    error = classify_error(
        payload.error or _FAILED_FALLBACK_MESSAGE[payload.status],
        payload={"code": payload.code} if payload.code else None,
        default=_FAILED_STATUS[payload.status],
    )
    changes: Dict[str, Any] = {
        "status": MigrationStatus.ERROR,
        "step": MigrationStep.ERROR,
        "error": error,
        "polling_active": False,
    }
    if payload.status is RawStatus.BURN_FAILED:
        if payload.transaction is not None or session.transaction is not None:
            changes["transaction"] = _with_transaction(session, payload.transaction, "failed", config)
    elif payload.transaction is not None:
        changes["transaction"] = _merge(session.transaction, payload.transaction)
    if payload.status is RawStatus.VESTING_FAILED and payload.vesting is not None:
        changes["vesting"] = _with_vesting(session, payload.vesting, config)

    return ReconcileResult(changes=changes, terminal=True, reason=payload.status.value)


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


def _progress_eligible(session: MigrationSession) -> bool:
    return status_rank(session.status) >= status_rank(MigrationStatus.VESTING_STARTED)


def _normalise_fraction(value: float) -> float:
    # Values above 1 are percentages.
    if 1.0 < value <= 100.0:
        value = value / 100.0
    return clamp_fraction(value)


def merge_progress(
    session: MigrationSession,
    raw: Union[Mapping[str, Any], ProgressPayload],
) -> Dict[str, Any]:
    """Return the ``progress`` change for a progress payload.

    Fields absent from the payload keep their previous values.  Returns an
    empty mapping before vesting has started.

    Raises:
        pydantic.ValidationError: when *raw* is not a progress payload.
    """
    if not _progress_eligible(session):
        return {}

    payload = raw if isinstance(raw, ProgressPayload) else ProgressPayload.model_validate(raw)
    update: Dict[str, Any] = {}
    if payload.progress is not None and not math.isnan(payload.progress):
        update["progress"] = _normalise_fraction(payload.progress)
    if payload.vested_amount is not None:
        update["vested_amount"] = payload.vested_amount
    if payload.remaining_amount is not None:
        update["remaining_amount"] = payload.remaining_amount
    if payload.days_remaining is not None:
        update["days_remaining"] = max(0, payload.days_remaining)

    current = session.progress or ProgressData()
    merged = current.model_copy(update=update)
    if merged == session.progress:
        return {}
    return {"progress": merged}


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    text = value.strip()
    try:
        if text.isdigit():
            stamp = int(text)
            # Millisecond epochs are 13 digits.
            if stamp > 10**11:
                stamp = stamp // 1000
            return datetime.fromtimestamp(stamp, tz=timezone.utc)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def estimate_progress(
    vesting: Optional[VestingData],
    now: Optional[datetime] = None,
) -> Optional[ProgressData]:
    """Estimate linear vesting progress from the contract's start/end dates.

    Used only while the backend has not reported progress yet.  Returns
    ``None`` when the dates are missing or unusable.
    """
    if vesting is None:
        return None
    start = _parse_timestamp(vesting.start_date)
    end = _parse_timestamp(vesting.end_date)
    if start is None or end is None or end <= start:
        return None

    now = now or datetime.now(timezone.utc)
    total = (end - start).total_seconds()
    fraction = clamp_fraction((now - start).total_seconds() / total)
    days_remaining = max(0, math.ceil((end - now).total_seconds() / 86400))

    vested_amount = remaining_amount = None
    if vesting.amount:
        try:
            amount = Decimal(vesting.amount)
            if amount.is_finite():
                vested = (amount * Decimal(str(fraction))).quantize(
                    Decimal(1), rounding=ROUND_FLOOR
                )
                vested_amount = str(vested)
                remaining_amount = str(amount - vested)
        except InvalidOperation:
            logger.debug("vesting_amount_unreadable", amount=vesting.amount)

    return ProgressData(
        progress=fraction,
        vested_amount=vested_amount,
        remaining_amount=remaining_amount,
        days_remaining=days_remaining,
    )
