"""
Pytest configuration for migration_tracker tests.
"""

from __future__ import annotations

import itertools

import pytest
from structlog.contextvars import clear_contextvars

from migration_tracker.configuration import TrackerConfiguration
from migration_tracker.engine import MigrationEngine

VALID_FORM = {
    "accountId": "acct-42",
    "tokenAddress": "0x4e0dEBF0c8795A7861A64Df7F136f989921d0247",
    "amount": "1500.75",
    "solanaWalletAddress": "Gv7q3K4xGjgP9YsF8nZhE2wR5tBcA6mL9pN3rT8sX1vY",
    "vestingDurationDays": 90,
}


# ---------------------------------------------------------------------------
# Keep structlog context from leaking between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_log_context():
    clear_contextvars()
    yield
    clear_contextvars()


@pytest.fixture()
def form_data() -> dict:
    return dict(VALID_FORM)


@pytest.fixture()
def tracker_config() -> TrackerConfiguration:
    """Fast polling so loops finish within a few event-loop turns."""
    return TrackerConfiguration(
        poll_interval=0,
        max_poll_attempts=10,
        base_explorer_url="https://basescan.test",
        solana_explorer_url="https://explorer.solana.test",
        solana_network="devnet",
    )


@pytest.fixture()
def make_engine(tracker_config):
    """Build an engine around a stub transport with deterministic ids.

    Usage::

        engine = make_engine(ScriptedTransport([...]), max_poll_attempts=5)
    """
    counter = itertools.count(1)

    def _factory(transport, **overrides) -> MigrationEngine:
        config = tracker_config
        if overrides:
            values = {**vars(tracker_config), **overrides}
            config = TrackerConfiguration(**values)
        return MigrationEngine(
            transport,
            config,
            id_factory=lambda: f"migration-{next(counter)}",
        )

    return _factory
