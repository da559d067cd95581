"""
Custom exception classes

All business-rule failures live here so the API layer can map them in one
place. Every exception is a recoverable, user-facing outcome: it is raised
before any mutation is applied.
"""


class JamAppException(Exception):
    """Base class for every jam/user rule violation"""
    pass


# ============ Taxonomy ============

class ValidationError(JamAppException):
    """Malformed or missing input"""
    pass


class NotFound(JamAppException):
    """Referenced jam or user does not exist"""
    pass


class Forbidden(JamAppException):
    """Actor lacks authority for the action"""
    pass


class InvalidState(JamAppException):
    """Action is not legal in the jam's current status"""
    pass


class Conflict(JamAppException):
    """Scheduling collision or a lost race on a scarce role slot"""
    pass


# ============ Validation ============

class MissingField(ValidationError):
    """A required creation field is absent or empty"""
    def __init__(self, field):
        self.field = field
        super().__init__(f'Invalid creation data - missing attribute value: "{field}"')


class InvalidRole(ValidationError):
    """A role name outside the catalog"""
    def __init__(self, role):
        self.role = role
        super().__init__(f"Invalid role choice: {role}")


class InvalidSchedule(ValidationError):
    """Start time in the past, end before start, or unparseable times"""
    pass


class MalformedRosterToken(ValidationError):
    """A stored filled-role token could not be decoded"""
    def __init__(self, token, reason):
        self.token = token
        super().__init__(f"Malformed roster token {token!r}: {reason}")


class UsernameTaken(ValidationError):
    def __init__(self, username):
        self.username = username
        super().__init__("That username is taken already")


class InvalidCredentials(ValidationError):
    def __init__(self):
        super().__init__("Invalid login credentials")


# ============ Not found ============

class JamNotFound(NotFound):
    def __init__(self, jam_id):
        self.jam_id = jam_id
        super().__init__(f"Jam {jam_id} not found")


class UserNotFound(NotFound):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


# ============ Authority ============

class HostOnlyAction(Forbidden):
    """start/end/delete attempted by someone other than the host"""
    def __init__(self, action):
        self.action = action
        super().__init__(f"Unable to {action} jam - only the host may {action} the jam")


class HostCannotJoin(Forbidden):
    def __init__(self):
        super().__init__("The host cannot join the jam")


class NotAParticipant(Forbidden):
    """leave attempted by a user on neither roster"""
    def __init__(self, jam_id, user_id):
        self.jam_id = jam_id
        self.user_id = user_id
        super().__init__(f"User {user_id} has not joined jam {jam_id}")


# ============ State ============

class InvalidStateTransition(InvalidState):
    """Illegal status change or roster change outside PENDING"""
    pass


# ============ Conflicts ============

class VenueConflict(Conflict):
    def __init__(self):
        super().__init__("There is already a jam at the specified venue at the specified time")


class HostDoubleBooking(Conflict):
    def __init__(self):
        super().__init__("Invalid jam start time - you already have a jam booked for this time")


class RoleNotAvailable(Conflict):
    """Chosen role is not required, already exhausted, or not in the user's capabilities"""
    def __init__(self, role):
        self.role = role
        super().__init__(f"Role {role} is not available to this user")


class AlreadyJoined(Conflict):
    def __init__(self, roster):
        self.roster = roster
        super().__init__(f"User has already joined this jam as {roster.lower()}")


class DualMembershipConflict(Conflict):
    """User tried to be both performer and attendee while dual membership is disabled"""
    def __init__(self):
        super().__init__("A user cannot be both a performer and an attendee of the same jam")


class JamModifiedConcurrently(Conflict):
    """Optimistic retries exhausted; the jam kept changing underneath the request"""
    def __init__(self, jam_id):
        self.jam_id = jam_id
        super().__init__(f"Jam {jam_id} was modified concurrently, please retry")
