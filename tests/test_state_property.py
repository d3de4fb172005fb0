"""Property-based tests for status reconciliation.

These tests rely on *Hypothesis* to generate arbitrary sequences of backend
payloads, including late, duplicated and malformed ones, and verify the
invariants the poll loop depends on:

* the forward status never moves backwards,
* nothing changes once the session is terminal,
* the session snapshot stays immutable; ``model_copy(update=…)`` returns a
  new object and leaves the original untouched.

Run with::

    pytest -q tests/test_state_property.py
"""

from __future__ import annotations

import hypothesis.strategies as st
from hypothesis import given, settings

from migration_tracker.configuration import TrackerConfiguration
from migration_tracker.models import MigrationSession, MigrationStatus, MigrationStep
from migration_tracker.reconciler import reconcile, status_rank

CONFIG = TrackerConfiguration(poll_interval=0)

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

status_codes = st.sampled_from(
    [
        "pending_burn",
        "burn_confirmed",
        "burn_failed",
        "vesting_started",
        "vesting_failed",
        "completed",
    ]
)

transaction_strategy = st.none() | st.fixed_dictionaries(
    {"hash": st.from_regex(r"0x[0-9a-f]{8}", fullmatch=True)},
    optional={"blockNumber": st.integers(min_value=0, max_value=10**9)},
)

payload_strategy = st.one_of(
    st.builds(
        lambda code, tx: {"status": code, **({"transaction": tx} if tx else {})},
        status_codes,
        transaction_strategy,
    ),
    # occasionally something the backend should never send
    st.just({"id": "m-1"}),
    st.just({"status": "unknown"}),
)

# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def _fold(payloads):
    session = MigrationSession(
        migration_id="m-1", step=MigrationStep.PROCESSING, polling_active=True
    )
    history = [session]
    for raw in payloads:
        result = reconcile(session, raw, config=CONFIG)
        if result.changes:
            session = session.model_copy(update=result.changes)
        history.append(session)
        if result.terminal:
            assert session.polling_active is False
    return history


@settings(max_examples=200)
@given(payloads=st.lists(payload_strategy, max_size=12))
def test_forward_status_never_regresses(payloads) -> None:
    history = _fold(payloads)

    forward = [s.status for s in history if s.status is not MigrationStatus.ERROR]
    ranks = [status_rank(s) for s in forward]
    assert ranks == sorted(ranks)


@settings(max_examples=200)
@given(payloads=st.lists(payload_strategy, max_size=12))
def test_terminal_session_is_never_modified(payloads) -> None:
    history = _fold(payloads)

    for index, session in enumerate(history):
        if session.is_terminal:
            assert all(later == session for later in history[index:])
            break


@given(payloads=st.lists(payload_strategy, max_size=6))
def test_session_frozen_and_copy(payloads) -> None:
    """MigrationSession should be immutable and copyable."""
    session = _fold(payloads)[-1]

    try:
        session.migration_id = "changed"  # type: ignore[misc]
    except (TypeError, ValueError):
        pass
    else:
        raise AssertionError("MigrationSession is not frozen (assignment succeeded)")

    copied = session.model_copy(update={"migration_id": "m-2"})
    assert copied.migration_id == "m-2" and session.migration_id == "m-1"
