from turnroom import socketio
from turnroom.services.turns.sinks import NotificationSink, broadcast_state

from conftest import make_room


def _ensure_connected(sio_client):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    # Flush any initial events
    sio_client.get_received('/ws')


def test_socket_connect_and_join(flask_app, sio_client):
    make_room('SOCK', ['alice', 'bob'])
    _ensure_connected(sio_client)
    sio_client.emit('join_room', {'room_code': 'sock', 'user_id': 'bob'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    joined = [pkt for pkt in received if pkt['name'] == 'joined']
    assert joined
    assert joined[0]['args'][0]['rooms'] == ['room:SOCK', 'user:bob']


def test_join_unknown_room(flask_app, sio_client):
    _ensure_connected(sio_client)
    sio_client.emit('join_room', {'room_code': 'NOPE'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)


def test_ping(flask_app, sio_client):
    _ensure_connected(sio_client)
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert {'name': 'pong', 'args': [{'n': 1}], 'namespace': '/ws'} in received


def test_state_and_notifications_reach_subscribers(flask_app, sio_client):
    make_room('LIVE', ['alice', 'bob'])
    _ensure_connected(sio_client)
    sio_client.emit('join_room', {'room_code': 'LIVE', 'user_id': 'bob'}, namespace='/ws')
    sio_client.get_received('/ws')

    broadcast_state('LIVE')
    NotificationSink().notify('bob', 'nudged_you', {'nudger_user_id': 'alice'})
    NotificationSink().notify('alice', 'your_turn', {})

    received = sio_client.get_received('/ws')
    names = [pkt['name'] for pkt in received]
    assert 'state_update' in names
    notes = [pkt['args'][0] for pkt in received if pkt['name'] == 'notification']
    assert notes == [{'user_id': 'bob', 'kind': 'nudged_you', 'metadata': {'nudger_user_id': 'alice'}}]


def test_leave_room_stops_broadcasts(flask_app, sio_client):
    make_room('QUIT', ['alice', 'bob'])
    _ensure_connected(sio_client)
    sio_client.emit('join_room', {'room_code': 'QUIT'}, namespace='/ws')
    sio_client.emit('leave_room', {'room_code': 'QUIT'}, namespace='/ws')
    sio_client.get_received('/ws')
    socketio.emit('state_update', {'room_code': 'QUIT'}, to='room:QUIT', namespace='/ws')
    assert sio_client.get_received('/ws') == []
