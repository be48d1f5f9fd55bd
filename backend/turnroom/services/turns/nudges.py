from typing import Iterable, Optional, Set

from sqlalchemy.exc import IntegrityError

from turnroom import db
from turnroom.models import Nudge
from .errors import AlreadyNudgedThisTurn


class NudgeLedger:
    """Per-turn-instance nudge records.

    Rows are keyed by (room, nudger, instance_id) under a unique constraint,
    so concurrent nudges for the same instance have exactly one winner.
    Rows from earlier instances stay for audit and never count again.
    """

    def record(self, room_id: int, nudger_user_id: str, nudged_user_id: str, instance_id: str, now) -> Nudge:
        nudge = Nudge(
            room_id=room_id,
            nudger_user_id=nudger_user_id,
            nudged_user_id=nudged_user_id,
            instance_id=instance_id,
            created_at=now,
        )
        db.session.add(nudge)
        try:
            db.session.flush()
        except IntegrityError:
            # session needs a rollback now; the coordinator does it
            raise AlreadyNudgedThisTurn()
        return nudge

    def nudgers(self, room_id: int, instance_id: str) -> Set[str]:
        rows = (
            db.session.query(Nudge.nudger_user_id)
            .filter_by(room_id=room_id, instance_id=instance_id)
            .distinct()
        )
        return {uid for (uid,) in rows}

    def has_nudged(self, room_id: int, user_id: Optional[str], instance_id: str) -> bool:
        if not user_id:
            return False
        return (
            Nudge.query.filter_by(room_id=room_id, nudger_user_id=user_id, instance_id=instance_id).first()
            is not None
        )

    def tally(self, room_id: int, instance_id: str, holder_user_id: str, members: Iterable[str]):
        """Return (eligible_count, nudge_count) for the live instance.

        Eligible members are everyone currently in the room except the
        holder; nudges from people who have since left do not count.
        """
        eligible = {uid for uid in members if uid != holder_user_id}
        counted = self.nudgers(room_id, instance_id) & eligible
        return len(eligible), len(counted)

    def all_nudged(self, room_id: int, instance_id: str, holder_user_id: str, members: Iterable[str]) -> bool:
        eligible_count, nudge_count = self.tally(room_id, instance_id, holder_user_id, members)
        return eligible_count > 0 and nudge_count >= eligible_count
