"""
Request/response schemas for the API layer
"""
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import Jam, JamStatus


# ============ Users ============

class UserCreate(BaseModel):
    username: str
    password: str
    band_roles: Union[List[str], str]

    @field_validator("band_roles", mode="before")
    @classmethod
    def wrap_single_role(cls, v):
        # A form with one checked role posts a bare string
        if isinstance(v, str):
            return [v]
        return v


class UserLogin(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    band_roles: List[str]
    past_jam_ids: List[int]


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ============ Jams ============

class JamCreate(BaseModel):
    title: str
    venue_location: str
    based_on_song: str
    start_time: datetime
    end_time: datetime
    required_roles: Union[List[str], str]

    @field_validator("required_roles", mode="before")
    @classmethod
    def wrap_single_role(cls, v):
        if isinstance(v, str):
            return [v]
        return v


class JamJoin(BaseModel):
    chosen_role: Optional[str] = None


class FilledRole(BaseModel):
    role: str
    user_id: int


class JamResponse(BaseModel):
    id: int
    title: str
    status: JamStatus
    venue_location: str
    based_on_song: str
    start_time: datetime
    end_time: datetime
    host_id: int
    required_roles: List[str]
    filled_roles: List[FilledRole]
    performer_ids: List[int]
    attendee_ids: List[int]

    @classmethod
    def from_jam(cls, jam: Jam) -> "JamResponse":
        return cls(
            id=jam.id,
            title=jam.title,
            status=jam.status,
            venue_location=jam.venue_location,
            based_on_song=jam.based_on_song,
            start_time=jam.start_time,
            end_time=jam.end_time,
            host_id=jam.host_id,
            required_roles=list(jam.required_roles or []),
            filled_roles=[FilledRole(role=slot.role, user_id=slot.user_id) for slot in jam.filled_roles],
            performer_ids=list(jam.performer_ids or []),
            attendee_ids=list(jam.attendee_ids or []),
        )


class JamDetailResponse(BaseModel):
    jam: JamResponse
    is_host: bool
    has_joined_as_player: bool
    has_joined_as_attendee: bool
    possible_roles: List[str] = Field(default_factory=list)
    can_join_as_player: bool


class DeleteResponse(BaseModel):
    status: str = "ok"
    deleted_jam_id: int


class HistorySyncResponse(BaseModel):
    jam_id: int
    complete: bool
