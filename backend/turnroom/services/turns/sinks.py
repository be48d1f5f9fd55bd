"""Default collaborators for the turn engine.

``MessageStore`` writes into the caller's transaction so an answer is only
kept if its advance commits. ``NotificationSink`` is fire-and-forget and is
only invoked after commit.
"""

import json
from typing import Any, Dict, Optional

from flask import current_app

from turnroom import db, socketio
from turnroom.models import Message


class MessageStore:
    def append(self, room_id: int, author_user_id: Optional[str], kind: str, payload: Any) -> int:
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        message = Message(room_id=room_id, author_user_id=author_user_id, kind=kind, payload=payload)
        db.session.add(message)
        db.session.flush()
        return message.id


class NotificationSink:
    """Delivers per-user notifications over the realtime channel."""

    def notify(self, user_id: str, kind: str, metadata: Dict[str, Any]) -> None:
        current_app.logger.info(f"[notify] user={user_id} kind={kind}")
        socketio.emit(
            'notification',
            {'user_id': user_id, 'kind': kind, 'metadata': metadata},
            to=f"user:{user_id}",
            namespace='/ws',
        )


def broadcast_state(room_code: str) -> None:
    socketio.emit('state_update', {'room_code': room_code}, to=f"room:{room_code}", namespace='/ws')
