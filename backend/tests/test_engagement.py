from turnroom import db
from turnroom.models import Member, Message
from turnroom.services.turns.engagement import REMOVED_FOR_INACTIVITY, EngagementPolicy


def _queue():
    queued = []

    def queue(user_id, kind, metadata):
        queued.append((user_id, kind, metadata))
    return queued, queue


def _streak(room, user_id):
    member = Member.query.filter_by(room_id=room.id, user_id=user_id).first()
    return member.missed_streak if member else None


def test_skip_increments_and_notifies(room):
    queued, queue = _queue()
    outcome = EngagementPolicy().apply(room, 'bob', 'auto_skip', 'bob', queue)
    assert outcome.missed_streak == 1
    assert outcome.removed is False
    assert _streak(room, 'bob') == 1
    assert queued == [('bob', 'turn_skipped', {
        'reason': 'auto_skip',
        'room_name': 'Room ROOM',
        'missed_streak': 1,
        'removed': False,
    })]


def test_completion_resets_streak(room):
    Member.query.filter_by(room_id=room.id, user_id='bob').update({'missed_streak': 2})
    queued, queue = _queue()
    outcome = EngagementPolicy().apply(room, 'bob', 'completed', None, queue)
    assert outcome.removed is False
    assert _streak(room, 'bob') == 0
    assert queued == []


def test_limit_removes_member(room):
    policy = EngagementPolicy(missed_turn_limit=3)
    queued, queue = _queue()
    for _ in range(2):
        assert policy.apply(room, 'carol', 'host_skip', 'carol', queue).removed is False
    outcome = policy.apply(room, 'carol', 'host_skip', 'carol', queue)
    db.session.commit()
    assert outcome.removed is True
    assert outcome.missed_streak == 3
    assert _streak(room, 'carol') is None
    assert Message.query.filter_by(room_id=room.id, payload=REMOVED_FOR_INACTIVITY).count() == 1
    assert queued[-1][2]['removed'] is True


def test_lower_limit_from_config(room):
    queued, queue = _queue()
    outcome = EngagementPolicy(missed_turn_limit=1).apply(room, 'bob', 'auto_skip', 'bob', queue)
    assert outcome.removed is True


def test_missing_member_is_a_no_op(room):
    queued, queue = _queue()
    outcome = EngagementPolicy().apply(room, 'ghost', 'auto_skip', 'ghost', queue)
    assert outcome.skipped_user_id == 'ghost'
    assert outcome.removed is False
    assert queued == []
