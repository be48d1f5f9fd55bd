from datetime import timedelta

from turnroom import db
from turnroom.services.turns.membership import MembershipStore, MembershipView

from conftest import BASE_TIME, make_room


def test_order_is_join_time_then_user_id(flask_app):
    room = make_room('ORDR', ['zed'])
    store = MembershipStore()
    # same join instant: user id breaks the tie
    store.add_member(room.id, 'mia', joined_at=BASE_TIME)
    store.add_member(room.id, 'abe', joined_at=BASE_TIME)
    store.add_member(room.id, 'early', joined_at=BASE_TIME - timedelta(days=3))
    db.session.commit()
    assert MembershipView().ordered_members(room.id) == ['early', 'zed', 'abe', 'mia']


def test_next_member_wraps(flask_app):
    room = make_room('WRAP', ['a', 'b', 'c'])
    view = MembershipView()
    assert view.next_member(room.id, 'a') == 'b'
    assert view.next_member(room.id, 'c') == 'a'


def test_next_member_from_departed_user_is_first(flask_app):
    room = make_room('GONE', ['a', 'b', 'c'])
    view = MembershipView()
    assert view.next_member(room.id, 'ghost') == 'a'
    assert view.next_member(room.id, None) == 'a'


def test_below_minimum_has_no_rotation(flask_app):
    room = make_room('LONE', ['a'])
    view = MembershipView()
    assert view.first_member(room.id) is None
    assert view.next_member(room.id, 'a') is None


def test_roles_and_removal(flask_app):
    room = make_room('ROLE', ['host', 'guest'])
    view = MembershipView()
    assert view.is_host(room.id, 'host')
    assert not view.is_host(room.id, 'guest')
    assert view.is_member(room.id, 'guest')
    assert view.role_of(room.id, 'guest') == 'member'
    assert view.role_of(room.id, 'stranger') is None
    assert view.store.remove_member(room.id, 'guest') is True
    assert view.store.remove_member(room.id, 'guest') is False
    db.session.commit()
    assert view.count(room.id) == 1
