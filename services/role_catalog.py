"""
Role catalog: the fixed set of band roles a jam can require

Pure lookup, no state. Order is display order only.
"""
from typing import Iterable, List

JAM_ROLES = (
    "LEAD VOCALS",
    "BACKUP VOCALS",
    "PERCUSSION",
    "BASS",
    "RHYTHM GUITAR",
    "LEAD GUITAR",
    "STRINGS",
    "HORNS",
    "WOODWINDS",
    "ELECTRONIC SOUNDS",
)

_ROLE_SET = frozenset(JAM_ROLES)


def is_valid_role(name) -> bool:
    """
    Check catalog membership

    Non-string input is simply not a role.
    """
    return isinstance(name, str) and name in _ROLE_SET


def invalid_roles(names: Iterable) -> List:
    """Return the entries of names that are not catalog roles, in input order"""
    return [name for name in names if not is_valid_role(name)]
