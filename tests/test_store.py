import pytest
from pydantic import ValidationError

from migration_tracker.models import MigrationSession, MigrationStatus, MigrationStep
from migration_tracker.store import SessionStore


def test_initial_session_is_idle_form():
    store = SessionStore()

    session = store.get()
    assert session.status is MigrationStatus.IDLE
    assert session.step is MigrationStep.FORM
    assert session.migration_id is None
    assert session.polling_active is False


def test_set_replaces_snapshot_and_notifies():
    store = SessionStore()
    seen = []
    store.subscribe(seen.append)
    before = store.get()

    after = store.set(status=MigrationStatus.PENDING_BURN)

    assert before.status is MigrationStatus.IDLE
    assert after is store.get()
    assert after.status is MigrationStatus.PENDING_BURN
    assert seen == [after]


def test_set_without_changes_does_not_notify():
    store = SessionStore()
    seen = []
    store.subscribe(seen.append)

    store.set()

    assert seen == []


def test_reset_with_seed_is_a_single_notification():
    store = SessionStore()
    store.set(status=MigrationStatus.COMPLETED, polling_active=True)
    seen = []
    store.subscribe(seen.append)

    store.reset(migration_id="m-2", step=MigrationStep.PROCESSING)

    assert len(seen) == 1
    assert seen[0] == MigrationSession(migration_id="m-2", step=MigrationStep.PROCESSING)


def test_snapshots_are_frozen():
    store = SessionStore()

    with pytest.raises(ValidationError):
        store.get().status = MigrationStatus.COMPLETED  # type: ignore[misc]


def test_observer_errors_are_contained():
    store = SessionStore()
    seen = []

    def _boom(_session):
        raise ValueError("nope")

    store.subscribe(_boom)
    store.subscribe(seen.append)

    store.set(polling_active=True)

    assert len(seen) == 1
    assert store.get().polling_active is True


def test_unsubscribe_twice_is_harmless():
    store = SessionStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    unsubscribe()
    unsubscribe()
    store.set(polling_active=True)

    assert seen == []
