"""
User Manager: accounts and performance history

Responsibilities:
1. Register users (validation + password hashing)
2. Authenticate username/password pairs
3. Look users up
4. Record past jams on performers once a jam ends

Credential checks happen here and in the API layer only; JamManager
trusts the identity it is given.
"""
from typing import Any, Dict, Iterable, List, Mapping
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import User
from core.locks import lock_users
from core.exceptions import (
    MissingField,
    InvalidRole,
    UsernameTaken,
    InvalidCredentials,
    UserNotFound,
)
from services.role_catalog import invalid_roles
from services.auth_service import hash_password, verify_password
from database import get_settings, transactional

logger = logging.getLogger(__name__)

REGISTRATION_FIELDS = ["username", "band_roles", "password"]


class UserManager:
    """User account and history manager"""

    def __init__(self, history_attempts: int = None):
        if history_attempts is None:
            history_attempts = get_settings().history_sync_attempts
        self.history_attempts = history_attempts

    # ============ Lookups ============

    @staticmethod
    def find_all_users(db: Session) -> List[User]:
        return db.query(User).order_by(User.id).all()

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """
        Raises:
            UserNotFound: no user with this id
        """
        user = db.get(User, user_id)
        if not user:
            raise UserNotFound(user_id)
        return user

    @staticmethod
    def get_user_by_username(db: Session, username: str):
        """Return the user or None"""
        return db.query(User).filter(User.username == username).first()

    # ============ Registration ============

    @staticmethod
    def validate_registration(db: Session, creation_data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Check registration input without writing anything

        Rules:
        1. username, band_roles, password present and non-empty
        2. username not taken
        3. every band role is a catalog role

        Returns:
            Normalized fields (band_roles always a list)

        Raises:
            MissingField, UsernameTaken, InvalidRole
        """
        for field in REGISTRATION_FIELDS:
            if not creation_data.get(field):
                raise MissingField(field)

        band_roles = creation_data["band_roles"]
        if isinstance(band_roles, str):
            band_roles = [band_roles]
        band_roles = list(band_roles)

        if UserManager.get_user_by_username(db, creation_data["username"]):
            raise UsernameTaken(creation_data["username"])

        bad = invalid_roles(band_roles)
        if bad:
            raise InvalidRole(bad[0])

        return {
            "username": creation_data["username"],
            "band_roles": band_roles,
            "password": creation_data["password"],
        }

    @staticmethod
    @transactional
    def register_user(db: Session, creation_data: Mapping[str, Any]) -> User:
        """
        Create a user after validation

        Returns:
            The new User (id assigned)
        """
        fields = UserManager.validate_registration(db, creation_data)

        user = User(
            username=fields["username"],
            password_hash=hash_password(fields["password"]),
            band_roles=fields["band_roles"],
            past_jam_ids=[],
        )
        db.add(user)
        db.flush()

        logger.info(f"Registered user {user.id} ({user.username}) roles={user.band_roles}")
        return user

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> User:
        """
        Raises:
            InvalidCredentials: unknown username or wrong password
        """
        user = UserManager.get_user_by_username(db, username) if username else None
        if not user or not password or not verify_password(password, user.password_hash):
            raise InvalidCredentials()
        return user

    # ============ History ============

    def record_jam_history(self, db: Session, jam_id: int, user_ids: Iterable[int]) -> bool:
        """
        Append jam_id to each user's past jams, at least once

        Idempotent: a user who already lists jam_id is left untouched, so the
        whole call may be repeated safely. Database errors are retried up to
        history_attempts times.

        Returns:
            True when every listed user is up to date, False when retries ran out
        """
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return True

        for attempt in range(1, self.history_attempts + 1):
            try:
                self._append_history(db, jam_id, user_ids)
                return True
            except SQLAlchemyError as e:
                logger.warning(
                    f"History update for jam {jam_id} failed "
                    f"(attempt {attempt}/{self.history_attempts}): {e}"
                )

        logger.error(f"Gave up recording jam {jam_id} history for users {user_ids}")
        return False

    @staticmethod
    @transactional
    def _append_history(db: Session, jam_id: int, user_ids: List[int]) -> None:
        users = lock_users(user_ids, db).all()

        missing = set(user_ids) - {user.id for user in users}
        if missing:
            logger.warning(f"Jam {jam_id} performers no longer exist: {sorted(missing)}")

        for user in users:
            past = list(user.past_jam_ids or [])
            if jam_id not in past:
                user.past_jam_ids = past + [jam_id]
                logger.info(f"Recorded jam {jam_id} in history of user {user.id}")
