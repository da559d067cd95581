"""
Eligibility service: which roles a user may still claim on a jam

Pure computation, no state transitions.

Slots of the same role are interchangeable: a role stays claimable while
the number of filled slots bearing it is below the number of required
slots bearing it.
"""
from collections import Counter
from typing import Dict, Set


def open_slot_counts(jam) -> Dict[str, int]:
    """
    Remaining capacity per role

    Returns:
        {role: required count - filled count} for roles with capacity left

    Example:
        required ["BASS", "BASS", "HORNS"], filled [("BASS", 7)]
        -> {"BASS": 1, "HORNS": 1}
    """
    required = Counter(jam.required_roles or [])
    filled = Counter(slot.role for slot in jam.filled_roles)
    return {role: count - filled[role] for role, count in required.items() if count > filled[role]}


def possible_roles(jam, user) -> Set[str]:
    """
    Roles from the user's capabilities that still have an open slot

    Deterministic, never raises. An empty set means the user cannot join
    as a player; it is not an error.
    """
    if user is None:
        return set()
    open_slots = open_slot_counts(jam)
    return {role for role in (user.band_roles or []) if role in open_slots}
