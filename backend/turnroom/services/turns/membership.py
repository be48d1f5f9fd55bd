from typing import List, Optional

from turnroom import db
from turnroom.models import Member, utcnow
from .constants import MIN_MEMBERS, ROLE_HOST, ROLE_MEMBER


class MembershipStore:
    """SQL-backed membership collaborator."""

    def list_members(self, room_id: int) -> List[Member]:
        return (
            Member.query.filter_by(room_id=room_id)
            .order_by(Member.joined_at, Member.user_id)
            .all()
        )

    def get_member(self, room_id: int, user_id: str) -> Optional[Member]:
        return Member.query.filter_by(room_id=room_id, user_id=user_id).first()

    def add_member(self, room_id: int, user_id: str, role: str = ROLE_MEMBER, joined_at=None) -> Member:
        member = Member(room_id=room_id, user_id=user_id, role=role, joined_at=joined_at or utcnow())
        db.session.add(member)
        db.session.flush()
        return member

    def remove_member(self, room_id: int, user_id: str) -> bool:
        deleted = Member.query.filter_by(room_id=room_id, user_id=user_id).delete()
        db.session.flush()
        return deleted > 0


class MembershipView:
    """Live, ordered view of a room's members.

    Rotation order is recomputed from current membership on every lookup so
    joins are picked up on the next advance and leavers are skipped without
    any repair step. Order is (joined_at, user_id).
    """

    def __init__(self, store: Optional[MembershipStore] = None, min_members: int = MIN_MEMBERS):
        self.store = store or MembershipStore()
        self.min_members = min_members

    def ordered_members(self, room_id: int) -> List[str]:
        return [m.user_id for m in self.store.list_members(room_id)]

    def count(self, room_id: int) -> int:
        return len(self.ordered_members(room_id))

    def is_member(self, room_id: int, user_id: str) -> bool:
        return self.store.get_member(room_id, user_id) is not None

    def role_of(self, room_id: int, user_id: str) -> Optional[str]:
        member = self.store.get_member(room_id, user_id)
        return member.role if member is not None else None

    def is_host(self, room_id: int, user_id: str) -> bool:
        return self.role_of(room_id, user_id) == ROLE_HOST

    def first_member(self, room_id: int) -> Optional[str]:
        order = self.ordered_members(room_id)
        if len(order) < self.min_members:
            return None
        return order[0]

    def next_member(self, room_id: int, from_user_id: Optional[str]) -> Optional[str]:
        """Member after ``from_user_id``; wraps to the first if it is last or gone."""
        order = self.ordered_members(room_id)
        if len(order) < self.min_members:
            return None
        if from_user_id not in order:
            return order[0]
        idx = order.index(from_user_id)
        return order[(idx + 1) % len(order)]
