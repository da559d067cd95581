"""
Roster codec: storage form of a filled role slot

A filled slot is a (role, holder user id) pair. In the jams table it is
stored as a single token "ROLE|user_id". This module is the only place
that token is built or parsed; business rules work on RoleSlot pairs.
"""
from typing import Iterable, List, NamedTuple

from core.exceptions import MalformedRosterToken
from services.role_catalog import is_valid_role

DELIMITER = "|"


class RoleSlot(NamedTuple):
    role: str
    user_id: int


def encode(role: str, user_id: int) -> str:
    """
    Build the storage token for one filled slot

    Raises:
        MalformedRosterToken: role is not a catalog role or user_id is not an int
    """
    if not is_valid_role(role):
        raise MalformedRosterToken(f"{role}{DELIMITER}{user_id}", "unknown role")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise MalformedRosterToken(f"{role}{DELIMITER}{user_id}", "holder id must be an integer")
    return f"{role}{DELIMITER}{user_id}"


def decode(token: str) -> RoleSlot:
    """
    Parse a storage token back into a RoleSlot

    Catalog role names never contain the delimiter, so the split is on the
    last occurrence.

    Raises:
        MalformedRosterToken: missing delimiter, unknown role, or non-integer holder
    """
    if not isinstance(token, str) or DELIMITER not in token:
        raise MalformedRosterToken(token, "missing delimiter")

    role, _, raw_id = token.rpartition(DELIMITER)
    if not is_valid_role(role):
        raise MalformedRosterToken(token, "unknown role")

    try:
        user_id = int(raw_id)
    except ValueError:
        raise MalformedRosterToken(token, "holder id must be an integer")

    return RoleSlot(role, user_id)


def encode_all(slots: Iterable[RoleSlot]) -> List[str]:
    return [encode(slot.role, slot.user_id) for slot in slots]


def decode_all(tokens: Iterable[str]) -> List[RoleSlot]:
    return [decode(token) for token in tokens]
