"""
Custom exception classes

All business-rule failures live here so the API layer can render them
through one handler. Each family carries the HTTP status it maps to.
"""


class LanpAppException(Exception):
    """Base class for every LanpApp business error"""
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message=None, details=None):
        self.message = message or self.error
        self.details = details
        super().__init__(self.message)


# ============ Families ============

class BadRequest(LanpAppException):
    """Invalid input, invalid state transition or business-rule violation"""
    status_code = 400
    error = "Bad Request"


class Unauthorized(LanpAppException):
    """Missing or invalid caller identity"""
    status_code = 401
    error = "Unauthorized"


class Forbidden(LanpAppException):
    """Authenticated but not permitted"""
    status_code = 403
    error = "Forbidden"


class NotFound(LanpAppException):
    """Entity does not exist"""
    status_code = 404
    error = "Not Found"


class Conflict(LanpAppException):
    """Duplicate entity or lost compare-and-swap"""
    status_code = 409
    error = "Conflict"


# ============ Not found ============

class LanpaNotFound(NotFound):
    def __init__(self, lanpa_id):
        self.lanpa_id = lanpa_id
        super().__init__(f"Lanpa {lanpa_id} not found")


class UserNotFound(NotFound):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class GameNotFound(NotFound):
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class PunishmentNotFound(NotFound):
    def __init__(self, punishment_id):
        self.punishment_id = punishment_id
        super().__init__(f"Punishment {punishment_id} not found")


class NominationNotFound(NotFound):
    def __init__(self, nomination_id):
        self.nomination_id = nomination_id
        super().__init__(f"Nomination {nomination_id} not found")


class MemberNotFound(NotFound):
    pass


class NotificationNotFound(NotFound):
    def __init__(self, notification_id):
        self.notification_id = notification_id
        super().__init__(f"Notification {notification_id} not found")


# ============ Permissions ============

class NotLanpaAdmin(Forbidden):
    """Only the lanpa's admin may do this"""
    pass


class NotLanpaMember(Forbidden):
    """Caller is neither the admin nor a confirmed/attended member"""
    pass


class SelfVoteNotAllowed(Forbidden):
    """A nominated user cannot vote on their own nomination"""
    pass


# ============ State ============

class InvalidStateTransition(BadRequest):
    """Transition not allowed by the lanpa lifecycle table"""
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition from {getattr(current, 'value', current)} "
            f"to {getattr(target, 'value', target)}"
        )


class VotingClosed(BadRequest):
    """Suggestions, game votes or nomination votes are not open"""
    pass


class GameNotSuggested(BadRequest):
    """Game was never suggested for this lanpa"""
    pass


class NominationAlreadyFinalized(BadRequest):
    pass


class VotingStillOpen(BadRequest):
    """Nomination cannot be finalized before voting_ends_at"""
    pass


class InvalidNomination(BadRequest):
    pass


# ============ Conflicts ============

class DuplicateSuggestion(Conflict):
    pass


class DuplicateNomination(Conflict):
    pass


class AlreadyMember(Conflict):
    pass


class ConcurrentModification(Conflict):
    """Row status changed between read and conditional update"""
    pass
