"""
Tests for stale reads and lost updates

Two sessions stand in for two concurrent requests: one holds a stale copy
of the jam while the other commits a change underneath it.
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from core.exceptions import (
    Conflict,
    InvalidStateTransition,
    JamModifiedConcurrently,
    RoleNotAvailable,
)
from core.locks import retry_on_stale
from models import Jam, JamStatus, JoinType


@pytest.fixture
def two_sessions(session_factory):
    first, second = session_factory(), session_factory()
    yield first, second
    first.close()
    second.close()


class TestLockedRevalidation:

    def test_last_slot_goes_to_exactly_one_player(self, manager, users, jam, two_sessions):
        first, second = two_sessions
        alice_id, bob_id = users["alice"].id, users["bob"].id

        stale = second.get(Jam, jam.id)
        assert stale.filled_roles == []

        manager.join_jam(first, jam.id, alice_id, JoinType.PLAYER, "BASS")

        with pytest.raises(RoleNotAvailable):
            manager.join_jam(second, jam.id, bob_id, JoinType.PLAYER, "BASS")

        final = manager.get_jam(first, jam.id)
        first.refresh(final)
        assert final.holders_of("BASS") == [alice_id]
        assert final.performer_ids == [alice_id]

    def test_leave_before_start_blocks_the_start(self, db, manager, users, jam, two_sessions):
        first, second = two_sessions
        manager.join_jam(db, jam.id, users["alice"].id, JoinType.PLAYER, "LEAD GUITAR")
        manager.join_jam(db, jam.id, users["bob"].id, JoinType.PLAYER, "BASS")

        stale = second.get(Jam, jam.id)
        assert stale.is_full()

        manager.leave_jam(first, jam.id, users["bob"].id)

        with pytest.raises(InvalidStateTransition):
            manager.start_jam(second, jam.id, users["host"].id)
        assert manager.get_jam(second, jam.id).status == JamStatus.PENDING

    def test_start_before_leave_blocks_the_leave(self, db, manager, users, jam, two_sessions):
        first, second = two_sessions
        manager.join_jam(db, jam.id, users["alice"].id, JoinType.PLAYER, "LEAD GUITAR")
        manager.join_jam(db, jam.id, users["bob"].id, JoinType.PLAYER, "BASS")

        stale = second.get(Jam, jam.id)
        assert stale.status == JamStatus.PENDING

        manager.start_jam(first, jam.id, users["host"].id)

        with pytest.raises(InvalidStateTransition):
            manager.leave_jam(second, jam.id, users["bob"].id)
        assert manager.get_jam(second, jam.id).performer_ids == [users["alice"].id, users["bob"].id]


class TestVersionColumn:

    def test_version_increments_on_each_write(self, db, manager, users, jam):
        assert manager.get_jam(db, jam.id).version_id == 1
        manager.join_jam(db, jam.id, users["carol"].id, JoinType.ATTENDEE)
        assert manager.get_jam(db, jam.id).version_id == 2

    def test_stale_write_rejected(self, manager, users, jam, two_sessions):
        first, second = two_sessions
        stale = second.get(Jam, jam.id)

        manager.join_jam(first, jam.id, users["carol"].id, JoinType.ATTENDEE)

        stale.attendee_ids = [users["alice"].id]
        with pytest.raises(StaleDataError):
            second.commit()
        second.rollback()

        fresh = second.get(Jam, jam.id)
        assert fresh.attendee_ids == [users["carol"].id]


class FlakyWriter:
    """Raises StaleDataError a fixed number of times before succeeding"""

    def __init__(self, failures, update_attempts=3):
        self.failures = failures
        self.update_attempts = update_attempts
        self.calls = 0

    @retry_on_stale
    def write(self, db, jam_id):
        self.calls += 1
        if self.calls <= self.failures:
            raise StaleDataError("version mismatch")
        return jam_id


class TestRetryOnStale:

    def test_succeeds_after_transient_races(self):
        writer = FlakyWriter(failures=2)
        assert writer.write(None, 7) == 7
        assert writer.calls == 3

    def test_gives_up_after_configured_attempts(self):
        writer = FlakyWriter(failures=5)
        with pytest.raises(JamModifiedConcurrently) as exc_info:
            writer.write(None, 7)
        assert writer.calls == 3
        assert exc_info.value.jam_id == 7
        assert isinstance(exc_info.value, Conflict)

    def test_at_least_one_attempt(self):
        writer = FlakyWriter(failures=0, update_attempts=0)
        assert writer.write(None, 1) == 1
        assert writer.calls == 1

    def test_other_errors_propagate_immediately(self):
        class Broken(FlakyWriter):
            @retry_on_stale
            def write(self, db, jam_id):
                self.calls += 1
                raise RoleNotAvailable("BASS")

        writer = Broken(failures=0)
        with pytest.raises(RoleNotAvailable):
            writer.write(None, 1)
        assert writer.calls == 1
