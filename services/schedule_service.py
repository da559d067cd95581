"""
Schedule service: creation-time conflict checks

Pure computation over already-loaded jams; JamManager does the querying.
Checks run in order and the first failure wins:
1. schedule sanity (start in the future, start before end)
2. venue collision (same venue, same start time)
3. host double booking (start falls inside another hosted jam)
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, NamedTuple, Optional


class ConflictKind(str, Enum):
    INVALID_SCHEDULE = "INVALID_SCHEDULE"
    VENUE_CONFLICT = "VENUE_CONFLICT"
    HOST_DOUBLE_BOOKING = "HOST_DOUBLE_BOOKING"


class CandidateSchedule(NamedTuple):
    venue_location: str
    start_time: datetime
    end_time: datetime


def utc_now() -> datetime:
    """Current time as naive UTC, the form stored in the database"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value) -> datetime:
    """
    Normalize a datetime or ISO-8601 string to naive UTC

    Raises:
        ValueError: value is neither a datetime nor a parseable ISO string
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise ValueError(f"Not a timestamp: {value!r}")
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def check_creation(
    candidate: CandidateSchedule,
    host_id: int,
    existing_jams: Iterable,
    now: datetime,
) -> Optional[ConflictKind]:
    """
    Classify a proposed jam schedule

    Args:
        candidate: venue and naive-UTC start/end of the new jam
        host_id: user creating the jam
        existing_jams: jams to compare against (any status)
        now: current naive-UTC time

    Returns:
        The first ConflictKind found, or None when the schedule is acceptable
    """
    if candidate.start_time <= now or candidate.start_time >= candidate.end_time:
        return ConflictKind.INVALID_SCHEDULE

    jams = list(existing_jams)

    for jam in jams:
        if jam.venue_location == candidate.venue_location and jam.start_time == candidate.start_time:
            return ConflictKind.VENUE_CONFLICT

    for jam in jams:
        if jam.host_id == host_id and jam.start_time <= candidate.start_time < jam.end_time:
            return ConflictKind.HOST_DOUBLE_BOOKING

    return None
