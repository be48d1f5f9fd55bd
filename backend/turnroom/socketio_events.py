from flask_socketio import join_room, leave_room, emit
from flask import current_app

from turnroom import socketio
from turnroom.models import Room


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_room(data):
    """Subscribe to a room's state broadcasts and, optionally, to the
    caller's own notification channel."""
    room_code = ((data or {}).get('room_code') or '').upper()
    user_id = (data or {}).get('user_id')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    if not Room.query.filter_by(code=room_code).first():
        emit('error', {'message': f'Room {room_code} not found'})
        return
    channel = f"room:{room_code}"
    join_room(channel)
    joined = [channel]
    if user_id:
        join_room(f"user:{user_id}")
        joined.append(f"user:{user_id}")
    current_app.logger.info(f"[ws-join] room={room_code} user={user_id}")
    emit('joined', {'rooms': joined})


def handle_leave_room(data):
    room_code = ((data or {}).get('room_code') or '').upper()
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    channel = f"room:{room_code}"
    leave_room(channel)
    emit('left', {'room': channel})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_room', handle_join_room, namespace='/ws')
    socketio.on_event('leave_room', handle_leave_room, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        socketio.on_event('connect', handle_connect, namespace='/')
        socketio.on_event('join_room', handle_join_room, namespace='/')
        socketio.on_event('leave_room', handle_leave_room, namespace='/')
        socketio.on_event('ping', handle_ping, namespace='/')
