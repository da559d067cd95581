"""
Jam state machine: every status change goes through here

PENDING -> ACTIVE -> ENDED, strictly forward, no skipping.
ENDED is terminal.
"""
import logging

from models import Jam, JamStatus
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


# {current status: {allowed next status}}
TRANSITIONS = {
    JamStatus.PENDING: {JamStatus.ACTIVE},
    JamStatus.ACTIVE: {JamStatus.ENDED},
    JamStatus.ENDED: set(),
}

# Roster changes and deletion are only legal before the jam starts
ROSTER_OPEN_STATUSES = {JamStatus.PENDING}


class JamStateMachine:
    """Validates and applies jam status transitions"""

    @staticmethod
    def can_transition(current: JamStatus, target: JamStatus) -> bool:
        return target in TRANSITIONS.get(current, set())

    @staticmethod
    def ensure_transition(jam: Jam, target: JamStatus, message: str = None) -> None:
        """
        Raise unless jam may move to target

        Raises:
            InvalidStateTransition: current status does not lead to target
        """
        if not JamStateMachine.can_transition(jam.status, target):
            raise InvalidStateTransition(
                message or f"Invalid transition: {jam.status.value} -> {target.value} for jam {jam.id}"
            )

    @staticmethod
    def ensure_roster_open(jam: Jam, message: str) -> None:
        """
        Raise unless the jam still accepts roster changes

        Raises:
            InvalidStateTransition: jam is ACTIVE or ENDED
        """
        if jam.status not in ROSTER_OPEN_STATUSES:
            raise InvalidStateTransition(message)

    @staticmethod
    def transition(jam: Jam, target: JamStatus) -> Jam:
        """
        Move an already-locked jam to target

        The caller is responsible for locking and committing.
        """
        JamStateMachine.ensure_transition(jam, target)
        previous = jam.status
        jam.status = target
        logger.info(f"Jam {jam.id} status {previous.value} -> {target.value}")
        return jam
