"""
Jam Manager: the complete jam lifecycle

Responsibilities:
1. Create jams (field, role and schedule validation)
2. Join / leave as player or attendee while PENDING
3. Start (host only, every slot filled) and end (host only)
4. Delete (host only, PENDING only)
5. Listing and detail queries

Rules:
- Every validate_* method is read-only and raises on the first problem;
  callers may validate without committing.
- Every mutating method locks the jam, re-runs the same validation against
  the locked row, then writes. Nothing is applied when validation fails.
- All status changes go through JamStateMachine.
"""
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Jam, JamStatus, JoinType, User
from core.state_machine import JamStateMachine
from core.locks import with_jam_lock, retry_on_stale
from core.user_manager import UserManager
from core.exceptions import (
    ValidationError,
    MissingField,
    InvalidRole,
    InvalidSchedule,
    JamNotFound,
    UserNotFound,
    HostOnlyAction,
    HostCannotJoin,
    NotAParticipant,
    InvalidStateTransition,
    VenueConflict,
    HostDoubleBooking,
    RoleNotAvailable,
    AlreadyJoined,
    DualMembershipConflict,
)
from services.role_catalog import JAM_ROLES, invalid_roles, is_valid_role
from services.eligibility_service import possible_roles
from services.schedule_service import (
    CandidateSchedule,
    ConflictKind,
    check_creation,
    to_naive_utc,
    utc_now,
)
from services.roster_codec import RoleSlot
from database import get_settings, transactional

logger = logging.getLogger(__name__)

CREATION_FIELDS = ["title", "venue_location", "based_on_song", "start_time", "end_time", "required_roles"]


class JamManager:
    """
    Jam lifecycle manager

    Holds no per-request state. Dependencies are explicit:
        clock: returns the current naive-UTC datetime
        update_attempts: optimistic retries per jam transaction
        allow_dual_membership: whether one user may be performer and attendee at once
        users: UserManager used for the end-of-jam history fan-out
    """

    def __init__(
        self,
        clock: Callable = None,
        update_attempts: int = None,
        allow_dual_membership: bool = None,
        users: UserManager = None,
    ):
        settings = get_settings()
        self.clock = clock or utc_now
        self.update_attempts = settings.jam_update_attempts if update_attempts is None else update_attempts
        self.allow_dual_membership = (
            settings.allow_dual_membership if allow_dual_membership is None else allow_dual_membership
        )
        self.users = users or UserManager()

    # ============ Queries ============

    @staticmethod
    def find_pending_jams(db: Session) -> List[Jam]:
        return db.query(Jam).filter(Jam.status == JamStatus.PENDING).order_by(Jam.start_time.asc()).all()

    @staticmethod
    def find_active_jams(db: Session) -> List[Jam]:
        return db.query(Jam).filter(Jam.status == JamStatus.ACTIVE).order_by(Jam.end_time.asc()).all()

    @staticmethod
    def find_past_jams(db: Session) -> List[Jam]:
        return db.query(Jam).filter(Jam.status == JamStatus.ENDED).order_by(Jam.end_time.desc()).all()

    @staticmethod
    def get_jam(db: Session, jam_id: int) -> Jam:
        """
        Raises:
            JamNotFound: no jam with this id
        """
        jam = db.get(Jam, jam_id)
        if not jam:
            raise JamNotFound(jam_id)
        return jam

    @staticmethod
    def possible_roles(db: Session, jam: Jam, user_id: int) -> Set[str]:
        """Roles user_id could claim on jam right now (empty for unknown users)"""
        return possible_roles(jam, db.get(User, user_id))

    def describe_for(self, db: Session, jam_id: int, user_id: int) -> Dict[str, Any]:
        """
        Jam detail from one user's point of view

        Returns:
            jam, is_host, has_joined_as_player, has_joined_as_attendee,
            possible_roles (catalog order), can_join_as_player
        """
        jam = self.get_jam(db, jam_id)
        is_host = jam.host_id == user_id
        roles = self.possible_roles(db, jam, user_id)
        ordered = [role for role in JAM_ROLES if role in roles]
        return {
            "jam": jam,
            "is_host": is_host,
            "has_joined_as_player": jam.is_performer(user_id),
            "has_joined_as_attendee": jam.is_attendee(user_id),
            "possible_roles": ordered,
            "can_join_as_player": (
                not is_host
                and jam.status == JamStatus.PENDING
                and not jam.is_performer(user_id)
                and bool(ordered)
            ),
        }

    # ============ Create ============

    def validate_creation(self, db: Session, creation_data: Mapping, host_id: int) -> Dict[str, Any]:
        """
        Check jam creation input without writing anything

        Rules (first failure wins):
        1. host exists
        2. every creation field present and non-empty
        3. start/end parse as timestamps
        4. every required role is a catalog role
        5. start in the future and before end
        6. no jam at the same venue and start time
        7. host has no jam whose [start, end) contains the new start

        Returns:
            Normalized creation fields

        Raises:
            UserNotFound, MissingField, InvalidSchedule, InvalidRole,
            VenueConflict, HostDoubleBooking
        """
        if not isinstance(creation_data, Mapping):
            raise ValidationError("Invalid creation data")
        if not db.get(User, host_id):
            raise UserNotFound(host_id)

        for field in CREATION_FIELDS:
            if not creation_data.get(field):
                raise MissingField(field)

        try:
            start_time = to_naive_utc(creation_data["start_time"])
            end_time = to_naive_utc(creation_data["end_time"])
        except ValueError:
            raise InvalidSchedule("Invalid start time or end time format")

        required_roles = creation_data["required_roles"]
        if isinstance(required_roles, str):
            required_roles = [required_roles]
        required_roles = list(required_roles)
        bad = invalid_roles(required_roles)
        if bad:
            raise InvalidRole(bad[0])

        venue_location = creation_data["venue_location"]
        candidate = CandidateSchedule(venue_location, start_time, end_time)
        existing = db.query(Jam).filter(
            or_(Jam.venue_location == venue_location, Jam.host_id == host_id)
        ).all()

        conflict = check_creation(candidate, host_id, existing, self.clock())
        if conflict == ConflictKind.INVALID_SCHEDULE:
            if start_time <= self.clock():
                raise InvalidSchedule("Start time must be in the future")
            raise InvalidSchedule("Start time must be before end time")
        if conflict == ConflictKind.VENUE_CONFLICT:
            raise VenueConflict()
        if conflict == ConflictKind.HOST_DOUBLE_BOOKING:
            raise HostDoubleBooking()

        return {
            "title": creation_data["title"],
            "venue_location": venue_location,
            "based_on_song": creation_data["based_on_song"],
            "start_time": start_time,
            "end_time": end_time,
            "required_roles": required_roles,
        }

    @transactional
    def create_jam(self, db: Session, creation_data: Mapping, host_id: int) -> Jam:
        """
        Create a PENDING jam hosted by host_id

        Flow:
        1. Validate input and schedule
        2. Insert the jam with empty rosters

        Returns:
            The new Jam (id assigned)
        """
        # 1. validate
        fields = self.validate_creation(db, creation_data, host_id)

        # 2. insert
        jam = Jam(
            status=JamStatus.PENDING,
            host_id=host_id,
            filled_role_tokens=[],
            performer_ids=[],
            attendee_ids=[],
            **fields,
        )
        db.add(jam)
        try:
            db.flush()
        except IntegrityError:
            # (venue_location, start_time) is unique; a concurrent create got there first
            raise VenueConflict()

        logger.info(
            f"Created jam {jam.id} '{jam.title}' at {jam.venue_location} "
            f"host={host_id} roles={jam.required_roles}"
        )
        return jam

    # ============ Join ============

    def validate_join(
        self, db: Session, jam_id: int, user_id: int, join_type, chosen_role: str = None
    ) -> Tuple[Jam, User]:
        """
        Check a join request against current state without writing

        Raises:
            ValidationError, JamNotFound, UserNotFound, HostCannotJoin,
            InvalidStateTransition, InvalidRole, AlreadyJoined,
            DualMembershipConflict, RoleNotAvailable
        """
        join_type = self._parse_join_type(join_type)
        jam = self.get_jam(db, jam_id)
        user = UserManager.get_user(db, user_id)
        self._check_join(jam, user, join_type, chosen_role)
        return jam, user

    @retry_on_stale
    @transactional
    def join_jam(self, db: Session, jam_id: int, user_id: int, join_type, chosen_role: str = None) -> Jam:
        """
        Add a user to the performer or attendee roster

        Flow:
        1. Lock the jam and load the user
        2. Re-validate against the locked row
        3. PLAYER: append to performers and fill one slot of chosen_role
           ATTENDEE: append to attendees

        Returns:
            The updated Jam
        """
        join_type = self._parse_join_type(join_type)

        # 1. lock
        jam = self._lock_jam(db, jam_id)
        user = UserManager.get_user(db, user_id)

        # 2. validate
        self._check_join(jam, user, join_type, chosen_role)

        # 3. apply
        if join_type == JoinType.PLAYER:
            jam.performer_ids = list(jam.performer_ids or []) + [user.id]
            jam.filled_roles = jam.filled_roles + [RoleSlot(chosen_role, user.id)]
            logger.info(f"User {user.id} joined jam {jam.id} as player ({chosen_role})")
        else:
            jam.attendee_ids = list(jam.attendee_ids or []) + [user.id]
            logger.info(f"User {user.id} joined jam {jam.id} as attendee")

        return jam

    def _check_join(self, jam: Jam, user: User, join_type: JoinType, chosen_role: Optional[str]) -> None:
        if user.id == jam.host_id:
            raise HostCannotJoin()

        JamStateMachine.ensure_roster_open(
            jam, "Unable to join the jam as the starting time has already past"
        )

        if join_type == JoinType.PLAYER:
            if not isinstance(chosen_role, str) or not is_valid_role(chosen_role):
                raise InvalidRole(chosen_role)
            if jam.is_performer(user.id):
                raise AlreadyJoined(JoinType.PLAYER.value)
            if jam.is_attendee(user.id) and not self.allow_dual_membership:
                raise DualMembershipConflict()
            if chosen_role not in possible_roles(jam, user):
                raise RoleNotAvailable(chosen_role)
        else:
            if jam.is_attendee(user.id):
                raise AlreadyJoined(JoinType.ATTENDEE.value)
            if jam.is_performer(user.id) and not self.allow_dual_membership:
                raise DualMembershipConflict()

    @staticmethod
    def _parse_join_type(join_type) -> JoinType:
        try:
            return JoinType(join_type)
        except ValueError:
            raise ValidationError("Invalid join parameters")

    # ============ Leave ============

    def validate_leave(self, db: Session, jam_id: int, user_id: int) -> Tuple[Jam, User]:
        """
        Raises:
            JamNotFound, UserNotFound, InvalidStateTransition, NotAParticipant
        """
        jam = self.get_jam(db, jam_id)
        user = UserManager.get_user(db, user_id)
        self._check_leave(jam, user)
        return jam, user

    @retry_on_stale
    @transactional
    def leave_jam(self, db: Session, jam_id: int, user_id: int) -> Jam:
        """
        Remove a user from every roster holding them

        A performer gives back exactly one filled slot: the first entry
        held by this user, even if the stored roster somehow lists more.

        Returns:
            The updated Jam
        """
        jam = self._lock_jam(db, jam_id)
        user = UserManager.get_user(db, user_id)
        self._check_leave(jam, user)

        if jam.is_attendee(user.id):
            attendees = list(jam.attendee_ids)
            attendees.remove(user.id)
            jam.attendee_ids = attendees
            logger.info(f"User {user.id} left jam {jam.id} as attendee")

        if jam.is_performer(user.id):
            performers = list(jam.performer_ids)
            performers.remove(user.id)
            jam.performer_ids = performers

            slots = jam.filled_roles
            index = next((i for i, slot in enumerate(slots) if slot.user_id == user.id), None)
            if index is None:
                logger.error(f"Jam {jam.id} lists performer {user.id} without a filled role slot")
            else:
                released = slots.pop(index)
                jam.filled_roles = slots
                logger.info(f"User {user.id} left jam {jam.id}, released {released.role}")

        return jam

    @staticmethod
    def _check_leave(jam: Jam, user: User) -> None:
        JamStateMachine.ensure_roster_open(
            jam, "Unable to leave the jam as the starting time has already past"
        )
        if not jam.has_participant(user.id):
            raise NotAParticipant(jam.id, user.id)

    # ============ Start ============

    def validate_start(self, db: Session, jam_id: int, user_id: int) -> Jam:
        """
        Raises:
            JamNotFound, UserNotFound, InvalidStateTransition, HostOnlyAction
        """
        jam = self.get_jam(db, jam_id)
        UserManager.get_user(db, user_id)
        self._check_start(jam, user_id)
        return jam

    @retry_on_stale
    @transactional
    def start_jam(self, db: Session, jam_id: int, user_id: int) -> Jam:
        """
        PENDING -> ACTIVE

        Preconditions:
        1. jam is PENDING
        2. caller is the host
        3. every required slot is filled

        The scheduled start time is replaced by the actual start time.
        Locking the row means a concurrent leave either lands before this
        check (and the start fails) or waits until the jam is ACTIVE (and
        the leave fails).
        """
        jam = self._lock_jam(db, jam_id)
        UserManager.get_user(db, user_id)
        self._check_start(jam, user_id)

        JamStateMachine.transition(jam, JamStatus.ACTIVE)
        jam.start_time = self.clock()

        logger.info(f"Started jam {jam.id} with performers {jam.performer_ids}")
        return jam

    @staticmethod
    def _check_start(jam: Jam, user_id: int) -> None:
        JamStateMachine.ensure_transition(
            jam, JamStatus.ACTIVE, "Unable to start jam because it is not pending"
        )
        if jam.host_id != user_id:
            raise HostOnlyAction("start")
        if not jam.is_full():
            raise InvalidStateTransition("Unable to start jam because not all required roles are filled")

    # ============ End ============

    def validate_end(self, db: Session, jam_id: int, user_id: int) -> Jam:
        """
        Raises:
            JamNotFound, UserNotFound, InvalidStateTransition, HostOnlyAction
        """
        jam = self.get_jam(db, jam_id)
        UserManager.get_user(db, user_id)
        self._check_end(jam, user_id)
        return jam

    def end_jam(self, db: Session, jam_id: int, user_id: int) -> Jam:
        """
        ACTIVE -> ENDED, then record the jam on every performer

        Flow:
        1. One transaction: lock, validate, flip status, set actual end time
        2. Separate, retried transactions: append jam id to each performer's
           history (idempotent)

        A history failure after retries is logged and left for
        sync_performer_history; the jam stays ENDED.
        """
        # 1. status
        jam = self._end_locked(db, jam_id, user_id)

        # 2. history fan-out
        if not self.users.record_jam_history(db, jam.id, list(jam.performer_ids or [])):
            logger.error(f"Jam {jam.id} ended but performer history is incomplete")

        return jam

    @retry_on_stale
    @transactional
    def _end_locked(self, db: Session, jam_id: int, user_id: int) -> Jam:
        jam = self._lock_jam(db, jam_id)
        UserManager.get_user(db, user_id)
        self._check_end(jam, user_id)

        JamStateMachine.transition(jam, JamStatus.ENDED)
        jam.end_time = self.clock()

        logger.info(f"Ended jam {jam.id}")
        return jam

    @staticmethod
    def _check_end(jam: Jam, user_id: int) -> None:
        if jam.status == JamStatus.ENDED:
            raise InvalidStateTransition("Unable to end jam because it has already ended")
        JamStateMachine.ensure_transition(
            jam, JamStatus.ENDED, "Unable to end jam because it has not been started yet"
        )
        if jam.host_id != user_id:
            raise HostOnlyAction("end")

    def sync_performer_history(self, db: Session, jam_id: int, user_id: int = None) -> bool:
        """
        Re-run the history fan-out for an ENDED jam

        Args:
            user_id: requesting user; when given, only the host may sync

        Returns:
            True when every performer now lists the jam

        Raises:
            JamNotFound, HostOnlyAction, InvalidStateTransition (jam has not ended)
        """
        jam = self.get_jam(db, jam_id)
        if user_id is not None and jam.host_id != user_id:
            raise HostOnlyAction("sync")
        if jam.status != JamStatus.ENDED:
            raise InvalidStateTransition(f"Jam {jam_id} has not ended")

        complete = self.users.record_jam_history(db, jam.id, list(jam.performer_ids or []))
        if complete:
            logger.info(f"Performer history for jam {jam.id} is complete")
        else:
            logger.error(f"Performer history for jam {jam.id} is still incomplete")
        return complete

    # ============ Delete ============

    def validate_delete(self, db: Session, jam_id: int, user_id: int) -> Jam:
        """
        Raises:
            JamNotFound, UserNotFound, InvalidStateTransition, HostOnlyAction
        """
        jam = self.get_jam(db, jam_id)
        UserManager.get_user(db, user_id)
        self._check_delete(jam, user_id)
        return jam

    @retry_on_stale
    @transactional
    def delete_jam(self, db: Session, jam_id: int, user_id: int) -> None:
        """Remove a PENDING jam; host only"""
        jam = self._lock_jam(db, jam_id)
        UserManager.get_user(db, user_id)
        self._check_delete(jam, user_id)

        db.delete(jam)
        logger.info(f"Deleted jam {jam_id}")

    @staticmethod
    def _check_delete(jam: Jam, user_id: int) -> None:
        JamStateMachine.ensure_roster_open(
            jam, "Unable to delete jam because it has already started"
        )
        if jam.host_id != user_id:
            raise HostOnlyAction("delete")

    # ============ Helpers ============

    @staticmethod
    def _lock_jam(db: Session, jam_id: int) -> Jam:
        jam = with_jam_lock(jam_id, db).first()
        if not jam:
            raise JamNotFound(jam_id)
        return jam
