import os
import random
import sys
from datetime import datetime, timedelta

import pytest

# Ensure the backend root (containing the `turnroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from turnroom import create_app, db, socketio
from turnroom.models import Prompt, Room, TurnSession
from turnroom.services.turns.constants import PROMPT_PHOTO, PROMPT_TEXT, ROLE_HOST
from turnroom.services.turns.coordinator import TurnCoordinator
from turnroom.services.turns.membership import MembershipStore
from turnroom.services.turns.prompt_bag import PromptBag


BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MIN_MEMBERS = 2
    MISSED_TURN_LIMIT = 3
    STALL_WINDOW_HOURS = 24
    ENABLE_STALL_SWEEPER = False
    CRON_SECRET = ''


class FixedClock:
    """Manually advanced clock handed to the coordinator."""

    def __init__(self, now=BASE_TIME):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingSink:
    def __init__(self):
        self.notifications = []
        self.broadcasts = []

    def notify(self, user_id, kind, metadata):
        self.notifications.append((user_id, kind, metadata))

    def broadcast(self, room_code):
        self.broadcasts.append(room_code)

    def kinds_for(self, user_id):
        return [kind for uid, kind, _ in self.notifications if uid == user_id]

    def clear(self):
        self.notifications.clear()
        self.broadcasts.clear()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def clock():
    return FixedClock()


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def coordinator(flask_app, clock, sink):
    coord = TurnCoordinator.from_config(
        flask_app.config,
        notifier=sink,
        broadcaster=sink.broadcast,
        clock=clock,
        prompts=PromptBag(random.Random(7)),
    )
    # the HTTP layer resolves the same instance
    flask_app.extensions['turn_coordinator'] = coord
    return coord


@pytest.fixture()
def prompts(flask_app):
    catalog = [
        ('P1', PROMPT_TEXT, 'fun'),
        ('P2', PROMPT_TEXT, 'fun'),
        ('P3', PROMPT_TEXT, 'fun'),
        ('D1', PROMPT_TEXT, 'deep'),
        ('D2', PROMPT_TEXT, 'deep'),
        ('F1', PROMPT_PHOTO, 'family'),
    ]
    for text, prompt_type, mode in catalog:
        db.session.add(Prompt(text=text, prompt_type=prompt_type, mode=mode))
    db.session.commit()
    return catalog


def make_room(code, user_ids, cooldown_minutes=0, mode='fun'):
    """Room whose first user is host, joined one minute apart in list order."""
    room = Room(code=code, name=f'Room {code}', prompt_mode=mode, cooldown_minutes=cooldown_minutes)
    db.session.add(room)
    db.session.flush()
    store = MembershipStore()
    for idx, user_id in enumerate(user_ids):
        role = ROLE_HOST if idx == 0 else 'member'
        store.add_member(room.id, user_id, role=role, joined_at=BASE_TIME - timedelta(days=1, minutes=-idx))
    db.session.commit()
    return room


@pytest.fixture()
def room(prompts):
    return make_room('ROOM', ['alice', 'bob', 'carol'])


def current_session(room_id):
    db.session.expire_all()
    return TurnSession.query.filter_by(room_id=room_id).first()
