"""Tests for creation-time schedule checks."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from services.schedule_service import (
    CandidateSchedule,
    ConflictKind,
    check_creation,
    to_naive_utc,
)

NOW = datetime(2030, 1, 1, 12, 0)
T = NOW + timedelta(days=1)


def existing(venue, start, hours=2, host_id=99):
    return SimpleNamespace(
        venue_location=venue,
        start_time=start,
        end_time=start + timedelta(hours=hours),
        host_id=host_id,
    )


class TestScheduleSanity:

    def test_start_in_past_is_invalid(self):
        candidate = CandidateSchedule("Hall A", NOW - timedelta(minutes=1), NOW + timedelta(hours=1))
        assert check_creation(candidate, 1, [], NOW) == ConflictKind.INVALID_SCHEDULE

    def test_start_equal_to_now_is_invalid(self):
        candidate = CandidateSchedule("Hall A", NOW, NOW + timedelta(hours=1))
        assert check_creation(candidate, 1, [], NOW) == ConflictKind.INVALID_SCHEDULE

    def test_start_must_precede_end(self):
        assert check_creation(CandidateSchedule("Hall A", T, T), 1, [], NOW) == ConflictKind.INVALID_SCHEDULE
        assert check_creation(
            CandidateSchedule("Hall A", T, T - timedelta(hours=1)), 1, [], NOW
        ) == ConflictKind.INVALID_SCHEDULE

    def test_clean_schedule_passes(self):
        candidate = CandidateSchedule("Hall A", T, T + timedelta(hours=2))
        assert check_creation(candidate, 1, [existing("Hall B", T)], NOW) is None


class TestVenueCollision:

    def test_same_venue_same_start_conflicts(self):
        candidate = CandidateSchedule("Hall A", T, T + timedelta(hours=1))
        assert check_creation(candidate, 1, [existing("Hall A", T)], NOW) == ConflictKind.VENUE_CONFLICT

    def test_same_venue_different_start_is_fine(self):
        candidate = CandidateSchedule("Hall A", T + timedelta(hours=3), T + timedelta(hours=4))
        assert check_creation(candidate, 1, [existing("Hall A", T)], NOW) is None

    def test_venue_checked_before_host_overlap(self):
        candidate = CandidateSchedule("Hall A", T, T + timedelta(hours=1))
        jams = [existing("Hall B", T - timedelta(hours=1), host_id=1), existing("Hall A", T)]
        assert check_creation(candidate, 1, jams, NOW) == ConflictKind.VENUE_CONFLICT


class TestHostDoubleBooking:

    def test_start_inside_hosted_jam_conflicts(self):
        candidate = CandidateSchedule("Hall B", T + timedelta(hours=1), T + timedelta(hours=3))
        jams = [existing("Hall A", T, host_id=1)]
        assert check_creation(candidate, 1, jams, NOW) == ConflictKind.HOST_DOUBLE_BOOKING

    def test_interval_is_half_open(self):
        jams = [existing("Hall A", T, hours=2, host_id=1)]
        at_start = CandidateSchedule("Hall B", T, T + timedelta(hours=1))
        at_end = CandidateSchedule("Hall B", T + timedelta(hours=2), T + timedelta(hours=3))
        assert check_creation(at_start, 1, jams, NOW) == ConflictKind.HOST_DOUBLE_BOOKING
        assert check_creation(at_end, 1, jams, NOW) is None

    def test_other_hosts_jams_do_not_count(self):
        candidate = CandidateSchedule("Hall B", T + timedelta(hours=1), T + timedelta(hours=3))
        jams = [existing("Hall A", T, host_id=2)]
        assert check_creation(candidate, 1, jams, NOW) is None


class TestToNaiveUtc:

    def test_iso_string_parsed(self):
        assert to_naive_utc("2030-01-02T12:00:00") == datetime(2030, 1, 2, 12, 0)

    def test_aware_values_converted_to_utc(self):
        aware = datetime(2030, 1, 2, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_naive_utc(aware) == datetime(2030, 1, 2, 12, 0)
        assert to_naive_utc("2030-01-02T12:00:00Z") == datetime(2030, 1, 2, 12, 0)

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            to_naive_utc("next friday")
        with pytest.raises(ValueError):
            to_naive_utc(12345)
