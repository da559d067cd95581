"""
ORM models: User and Jam

Jam is a data holder with a few derived queries. It performs no rule
validation; JamManager is its only writer.
"""
from datetime import datetime
from enum import Enum as PyEnum
from typing import List

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    JSON,
    Enum,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base
from services.roster_codec import RoleSlot, decode_all, encode_all


class JamStatus(str, PyEnum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


class JoinType(str, PyEnum):
    PLAYER = "PLAYER"
    ATTENDEE = "ATTENDEE"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    # Capability roles, catalog names in the order the user listed them
    band_roles = Column(JSON, nullable=False, default=list)
    # Jams this user performed in; append-only, unique
    past_jam_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    hosted_jams = relationship("Jam", back_populates="host", passive_deletes=True)

    def __repr__(self):
        return f"<User id={self.id} username={self.username!r}>"


class Jam(Base):
    __tablename__ = "jams"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    status = Column(Enum(JamStatus), nullable=False, default=JamStatus.PENDING, index=True)
    venue_location = Column(String, nullable=False)
    based_on_song = Column(String, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    host_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # One entry per open slot; a role repeats when several slots share it
    required_roles = Column(JSON, nullable=False, default=list)
    # Storage tokens "ROLE|user_id"; use the filled_roles property instead
    filled_role_tokens = Column("filled_roles", JSON, nullable=False, default=list)
    performer_ids = Column(JSON, nullable=False, default=list)
    attendee_ids = Column(JSON, nullable=False, default=list)

    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    host = relationship("User", back_populates="hosted_jams")

    # UPDATE ... WHERE version_id = :old, StaleDataError if another writer won
    __mapper_args__ = {"version_id_col": version_id}

    # One jam per venue per start time
    __table_args__ = (
        UniqueConstraint("venue_location", "start_time", name="uq_jams_venue_start"),
    )

    @property
    def filled_roles(self) -> List[RoleSlot]:
        return decode_all(self.filled_role_tokens or [])

    @filled_roles.setter
    def filled_roles(self, slots):
        # Always assign a fresh list so the JSON column is flagged dirty
        self.filled_role_tokens = encode_all(slots)

    def is_full(self) -> bool:
        return len(self.filled_role_tokens or []) == len(self.required_roles or [])

    def holders_of(self, role: str) -> List[int]:
        """User ids currently filling a slot of this role, in fill order"""
        return [slot.user_id for slot in self.filled_roles if slot.role == role]

    def role_of(self, user_id: int):
        """Role held by user_id, or None when the user holds no slot"""
        for slot in self.filled_roles:
            if slot.user_id == user_id:
                return slot.role
        return None

    def is_performer(self, user_id: int) -> bool:
        return user_id in (self.performer_ids or [])

    def is_attendee(self, user_id: int) -> bool:
        return user_id in (self.attendee_ids or [])

    def has_participant(self, user_id: int) -> bool:
        return self.is_performer(user_id) or self.is_attendee(user_id)

    def __repr__(self):
        return f"<Jam id={self.id} title={self.title!r} status={self.status}>"
