"""Rotation and engagement thresholds.

Defaults here are the single source for the turn engine; ``Config`` may
override the tunable ones per deployment.
"""

from datetime import timedelta

MIN_MEMBERS = 2
MISSED_TURN_LIMIT = 3
STALL_WINDOW = timedelta(hours=24)
STALL_SWEEP_INTERVAL_SEC = 15 * 60

COOLDOWN_CHOICES = (0, 60, 180, 360, 1440)

PROMPT_MODES = ('fun', 'family', 'deep', 'flirty', 'couple')
DEFAULT_PROMPT_MODE = 'fun'

PROMPT_TEXT = 'text'
PROMPT_PHOTO = 'photo'
PROMPT_TYPES = (PROMPT_TEXT, PROMPT_PHOTO)

ROOM_DM = 'dm'
ROOM_GROUP = 'group'

ROLE_HOST = 'host'
ROLE_MEMBER = 'member'

REASON_COMPLETED = 'completed'
REASON_AUTO_SKIP = 'auto_skip'
REASON_HOST_SKIP = 'host_skip'
ADVANCE_REASONS = (REASON_COMPLETED, REASON_AUTO_SKIP, REASON_HOST_SKIP)
SKIP_REASONS = (REASON_AUTO_SKIP, REASON_HOST_SKIP)

NOTIFY_YOUR_TURN = 'your_turn'
NOTIFY_NUDGED_YOU = 'nudged_you'
NOTIFY_TURN_SKIPPED = 'turn_skipped'

MESSAGE_SYSTEM = 'system'
MESSAGE_TURN_RESPONSE = 'turn_response'
