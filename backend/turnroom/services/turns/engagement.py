from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app

from turnroom import db
from turnroom.models import Member, Room
from .constants import (
    MESSAGE_SYSTEM, MISSED_TURN_LIMIT, NOTIFY_TURN_SKIPPED, REASON_COMPLETED, SKIP_REASONS,
)
from .membership import MembershipStore
from .sinks import MessageStore


REMOVED_FOR_INACTIVITY = 'A member was removed due to inactivity'


@dataclass
class EngagementOutcome:
    skipped_user_id: Optional[str] = None
    missed_streak: int = 0
    removed: bool = False


class EngagementPolicy:
    """Missed-turn streaks and inactivity removal.

    Runs at the start of every advance, before the next holder is looked
    up, so a member removed here is already gone from the rotation.
    """

    def __init__(self, store: Optional[MembershipStore] = None, messages: Optional[MessageStore] = None,
                 missed_turn_limit: int = MISSED_TURN_LIMIT):
        self.store = store or MembershipStore()
        self.messages = messages or MessageStore()
        self.missed_turn_limit = missed_turn_limit

    def apply(self, room: Room, holder_user_id: Optional[str], reason: str,
              skipped_user_id: Optional[str], queue_notification: Callable) -> EngagementOutcome:
        if reason == REASON_COMPLETED:
            if holder_user_id:
                self._reset_streak(room.id, holder_user_id)
            return EngagementOutcome()

        if reason not in SKIP_REASONS or not skipped_user_id:
            return EngagementOutcome()

        member = self.store.get_member(room.id, skipped_user_id)
        if member is None:
            # already gone; nothing to count against them
            return EngagementOutcome(skipped_user_id=skipped_user_id)

        member.missed_streak = (member.missed_streak or 0) + 1
        db.session.add(member)
        db.session.flush()
        outcome = EngagementOutcome(skipped_user_id=skipped_user_id, missed_streak=member.missed_streak)

        if member.missed_streak >= self.missed_turn_limit:
            self.store.remove_member(room.id, skipped_user_id)
            self.messages.append(room.id, None, MESSAGE_SYSTEM, REMOVED_FOR_INACTIVITY)
            outcome.removed = True
            current_app.logger.info(
                f"[engagement-remove] room={room.code} user={skipped_user_id} streak={outcome.missed_streak}"
            )

        queue_notification(skipped_user_id, NOTIFY_TURN_SKIPPED, {
            'reason': reason,
            'room_name': room.name,
            'missed_streak': outcome.missed_streak,
            'removed': outcome.removed,
        })
        return outcome

    def _reset_streak(self, room_id: int, user_id: str) -> None:
        Member.query.filter_by(room_id=room_id, user_id=user_id).update({'missed_streak': 0})
