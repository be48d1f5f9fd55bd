from turnroom import db
from turnroom.services.turns.constants import (
    DEFAULT_PROMPT_MODE, PROMPT_TEXT, ROLE_MEMBER, ROOM_GROUP,
)
from datetime import datetime, timezone
import string
import random


def utcnow():
    """Naive UTC timestamp; every DateTime column in this schema is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_room_code(length=4):
    """Generate a unique, short room code."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not Room.query.filter_by(code=code).first():
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(8), unique=True, index=True, nullable=False)
    name = db.Column(db.String(128), nullable=True)
    kind = db.Column(db.String(16), nullable=False, default=ROOM_GROUP)  # dm, group
    prompt_mode = db.Column(db.String(32), nullable=False, default=DEFAULT_PROMPT_MODE)
    cooldown_minutes = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    members = db.relationship('Member', back_populates='room', cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        super(Room, self).__init__(**kwargs)
        if not self.code:
            self.code = generate_room_code()

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'kind': self.kind,
            'prompt_mode': self.prompt_mode,
            'cooldown_minutes': self.cooldown_minutes,
        }


class Member(db.Model):
    __tablename__ = 'member'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'user_id', name='uq_member_room_user'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_MEMBER)  # host, member
    missed_streak = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    room = db.relationship('Room', back_populates='members')

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'role': self.role,
            'missed_streak': self.missed_streak,
            'joined_at': self.joined_at.isoformat() if self.joined_at else None,
        }


class Prompt(db.Model):
    __tablename__ = 'prompt'
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.Text, nullable=False)
    prompt_type = db.Column(db.String(16), nullable=False, default=PROMPT_TEXT)  # text, photo
    mode = db.Column(db.String(32), nullable=False, index=True)


class UsedPrompt(db.Model):
    __tablename__ = 'used_prompt'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'mode', 'prompt_id', name='uq_used_prompt_room_mode_prompt'),
        db.Index('ix_used_prompt_room_mode', 'room_id', 'mode'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False)
    mode = db.Column(db.String(32), nullable=False)
    prompt_id = db.Column(db.Integer, db.ForeignKey('prompt.id', ondelete='CASCADE'), nullable=False)
    used_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class TurnSession(db.Model):
    __tablename__ = 'turn_session'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, unique=True)
    instance_id = db.Column(db.String(32), nullable=False)
    holder_user_id = db.Column(db.String(64), nullable=True)
    prompt_text = db.Column(db.Text, nullable=True)
    prompt_type = db.Column(db.String(16), nullable=False, default=PROMPT_TEXT)
    cooldown_until = db.Column(db.DateTime, nullable=True)
    all_nudged_at = db.Column(db.DateTime, nullable=True)
    last_completed_at = db.Column(db.DateTime, nullable=True)
    turn_number = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    started_at = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)
    room = db.relationship('Room')

    def phase(self, now):
        """Observable sub-state of an active turn: 'open' or 'cooldown'."""
        if self.cooldown_until is not None and self.cooldown_until > now:
            return 'cooldown'
        return 'open'

    def to_dict(self, now=None):
        now = now or utcnow()
        return {
            'instance_id': self.instance_id,
            'holder_user_id': self.holder_user_id,
            'prompt_text': self.prompt_text,
            'prompt_type': self.prompt_type,
            'cooldown_until': self.cooldown_until.isoformat() if self.cooldown_until else None,
            'all_nudged_at': self.all_nudged_at.isoformat() if self.all_nudged_at else None,
            'last_completed_at': self.last_completed_at.isoformat() if self.last_completed_at else None,
            'turn_number': self.turn_number,
            'active': self.active,
            'phase': self.phase(now) if self.active else 'ended',
        }


class Nudge(db.Model):
    __tablename__ = 'nudge'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'nudger_user_id', 'instance_id', name='uq_nudge_per_turn_instance'),
        db.Index('ix_nudge_room_instance', 'room_id', 'instance_id'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False)
    nudger_user_id = db.Column(db.String(64), nullable=False)
    nudged_user_id = db.Column(db.String(64), nullable=False)
    instance_id = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Message(db.Model):
    __tablename__ = 'message'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, index=True)
    author_user_id = db.Column(db.String(64), nullable=True)  # null for system messages
    kind = db.Column(db.String(32), nullable=False)  # system, turn_response
    payload = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'author_user_id': self.author_user_id,
            'kind': self.kind,
            'payload': self.payload,
        }
