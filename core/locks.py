"""
Concurrency control

Two layers keep a jam read-validate-write serialized:

1. Row lease: SELECT ... FOR UPDATE on PostgreSQL. Concurrent requests
   for the same jam queue on the row instead of acting on stale reads.
2. Optimistic version check: Jam.version_id is the mapper version column,
   so an UPDATE that lost a race (SQLite ignores FOR UPDATE) matches zero
   rows and raises StaleDataError. retry_on_stale re-runs the whole
   transaction against fresh state.
"""
from functools import wraps
from typing import Iterable
import logging

from sqlalchemy.orm import Session, Query
from sqlalchemy.orm.exc import StaleDataError

from models import Jam, User
from core.exceptions import JamModifiedConcurrently

logger = logging.getLogger(__name__)


def with_jam_lock(jam_id: int, db: Session) -> Query:
    """
    Lock one Jam row for the rest of the transaction

    Use when:
    - validating and then changing a jam's rosters or status
    - the decision must hold until commit (role slots, start vs leave)

    Example:
        jam = with_jam_lock(jam_id, db).first()
        if not jam:
            raise JamNotFound(jam_id)
        jam.status = JamStatus.ACTIVE
        db.commit()

    Args:
        jam_id: Jam primary key
        db: SQLAlchemy Session

    Returns:
        Query object (call .first() for the row)

    Notes:
        - nowait=False waits for the current holder instead of failing
        - populate_existing overwrites any copy already in the identity map,
          so validation always sees the locked row
        - must run inside a transaction that ends in commit or rollback
    """
    return db.query(Jam).filter(
        Jam.id == jam_id
    ).with_for_update(nowait=False).populate_existing()


def lock_users(user_ids: Iterable[int], db: Session) -> Query:
    """
    Lock several User rows (history fan-out after a jam ends)

    Returns:
        Query object (call .all() for the rows)
    """
    return db.query(User).filter(
        User.id.in_(list(user_ids))
    ).with_for_update(nowait=False).populate_existing()


def retry_on_stale(func):
    """
    Re-run a jam transaction when its optimistic version check fails

    The wrapped method must have the signature (self, db, jam_id, ...) and
    be @transactional, so every attempt starts from a rolled-back session.
    The number of attempts comes from self.update_attempts.

    Raises:
        JamModifiedConcurrently: every attempt lost the race
    """
    @wraps(func)
    def wrapper(self, db, jam_id, *args, **kwargs):
        attempts = max(1, self.update_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return func(self, db, jam_id, *args, **kwargs)
            except StaleDataError:
                logger.warning(
                    f"Jam {jam_id} changed during {func.__name__} "
                    f"(attempt {attempt}/{attempts}), retrying on fresh state"
                )
        raise JamModifiedConcurrently(jam_id)

    return wrapper
