"""Turn engine exceptions.

Every business-rule failure is a ``TurnError`` carrying a stable ``code`` and
a ``category``. The coordinator turns them into ``TurnResult`` failures; the
HTTP layer maps the category onto a status code.
"""

PERMISSION_DENIED = 'permission_denied'
PRECONDITION_FAILED = 'precondition_failed'
CONFLICT = 'conflict'
NOT_FOUND = 'not_found'
INVARIANT_VIOLATION = 'invariant_violation'


class TurnError(Exception):
    """Base class for all turn engine errors."""
    category = PRECONDITION_FAILED
    code = 'turn_error'
    default_message = 'Turn operation failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDenied(TurnError):
    category = PERMISSION_DENIED
    code = 'permission_denied'
    default_message = 'Only the host can do that'


class PreconditionFailed(TurnError):
    category = PRECONDITION_FAILED
    code = 'precondition_failed'


class NoActiveSession(PreconditionFailed):
    code = 'no_active_session'
    default_message = 'No active session'


class NotYourTurn(PreconditionFailed):
    code = 'not_your_turn'
    default_message = 'Not your turn'


class InCooldown(PreconditionFailed):
    code = 'in_cooldown'
    default_message = 'Still in cooldown period'

    def __init__(self, cooldown_until=None):
        self.cooldown_until = cooldown_until
        super().__init__()


class WrongPromptType(PreconditionFailed):
    code = 'wrong_prompt_type'
    default_message = 'This prompt requires a different answer type'


class MissingPhoto(PreconditionFailed):
    code = 'missing_photo'
    default_message = 'Photo URL is required'


class InsufficientMembers(PreconditionFailed):
    code = 'insufficient_members'
    default_message = 'Need at least 2 members to start'


class NotAMember(PreconditionFailed):
    code = 'not_a_member'
    default_message = 'Not a member of this room'


class SelfNudge(PreconditionFailed):
    code = 'self_nudge'
    default_message = 'Cannot nudge yourself'


class StaleTurn(PreconditionFailed):
    """The turn advanced between read and write; reload and retry."""
    code = 'stale_turn'
    default_message = 'The turn changed, reload and try again'


class InvalidSetting(PreconditionFailed):
    code = 'invalid_setting'
    default_message = 'Invalid room setting'


class Conflict(TurnError):
    category = CONFLICT
    code = 'conflict'


class AlreadyNudgedThisTurn(Conflict):
    code = 'already_nudged_this_turn'
    default_message = 'Already nudged this turn'


class NotFound(TurnError):
    category = NOT_FOUND
    code = 'not_found'


class RoomNotFound(NotFound):
    code = 'room_not_found'

    def __init__(self, room_code):
        self.room_code = room_code
        super().__init__(f"Room {room_code} not found")


class InvariantViolation(TurnError):
    """Misconfiguration the engine refuses to paper over."""
    category = INVARIANT_VIOLATION
    code = 'invariant_violation'


class NoPromptsAvailable(InvariantViolation):
    code = 'no_prompts_available'

    def __init__(self, mode):
        self.mode = mode
        super().__init__(f"No prompts in catalog for mode '{mode}'")
