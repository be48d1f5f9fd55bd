from flask import Blueprint, jsonify, request, current_app
from sqlalchemy.exc import IntegrityError

from turnroom import db
from turnroom.models import Message, Room
from turnroom.services.turns.constants import (
    COOLDOWN_CHOICES, DEFAULT_PROMPT_MODE, PROMPT_MODES, ROLE_HOST, ROLE_MEMBER, ROOM_DM, ROOM_GROUP,
)
from turnroom.services.turns.coordinator import get_coordinator
from turnroom.services.turns.errors import (
    CONFLICT, NOT_FOUND, PERMISSION_DENIED, PRECONDITION_FAILED, InvariantViolation,
)
from turnroom.services.turns.membership import MembershipStore
from turnroom.services.turns.sinks import broadcast_state


rooms = Blueprint('rooms', __name__)

STATUS_BY_CATEGORY = {
    PERMISSION_DENIED: 403,
    PRECONDITION_FAILED: 400,
    CONFLICT: 409,
    NOT_FOUND: 404,
}

DM_MEMBER_LIMIT = 2


def _respond(result, created=False):
    if result.ok:
        return jsonify(result.to_dict()), 201 if created else 200
    return jsonify(result.to_dict()), STATUS_BY_CATEGORY.get(result.category, 400)


def _body():
    return request.get_json(silent=True) or {}


def _user_id(data):
    user_id = data.get('user_id')
    return str(user_id).strip() if user_id is not None else ''


@rooms.errorhandler(InvariantViolation)
def handle_invariant_violation(exc):
    return jsonify({
        'success': False,
        'error': exc.code,
        'category': exc.category,
        'message': exc.message,
    }), 500


@rooms.route('', methods=['POST'])
def create_room():
    data = _body()
    user_id = _user_id(data)
    if not user_id:
        return jsonify({'error': 'user_id is required'}), 400

    kind = data.get('kind') or ROOM_GROUP
    if kind not in (ROOM_DM, ROOM_GROUP):
        return jsonify({'error': 'kind must be dm or group'}), 400
    mode = data.get('prompt_mode') or DEFAULT_PROMPT_MODE
    if mode not in PROMPT_MODES:
        return jsonify({'error': 'Invalid prompt mode'}), 400
    try:
        cooldown = int(data.get('cooldown_minutes') or 0)
    except (TypeError, ValueError):
        cooldown = -1
    if cooldown not in COOLDOWN_CHOICES:
        return jsonify({'error': 'Invalid cooldown'}), 400

    room = Room(name=data.get('name'), kind=kind, prompt_mode=mode, cooldown_minutes=cooldown)
    db.session.add(room)
    db.session.flush()
    MembershipStore().add_member(room.id, user_id, role=ROLE_HOST)
    db.session.commit()
    current_app.logger.info(f"[room-create] room={room.code} host={user_id} kind={kind} mode={mode}")
    return jsonify({'message': 'New room created!', 'room': room.to_dict()}), 201


@rooms.route('/<string:room_code>/join', methods=['POST'])
def join_room(room_code):
    data = _body()
    user_id = _user_id(data)
    if not user_id:
        return jsonify({'error': 'user_id is required'}), 400

    room = Room.query.filter_by(code=room_code.upper()).first_or_404()
    store = MembershipStore()
    existing = store.get_member(room.id, user_id)
    if existing:
        return jsonify(existing.to_dict())
    if room.kind == ROOM_DM and len(store.list_members(room.id)) >= DM_MEMBER_LIMIT:
        return jsonify({'error': 'This room is full'}), 400

    try:
        member = store.add_member(room.id, user_id, role=ROLE_MEMBER)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        member = store.get_member(room.id, user_id)
        return jsonify(member.to_dict())

    current_app.logger.info(f"[room-join] room={room.code} user={user_id}")
    broadcast_state(room.code)
    return jsonify(member.to_dict()), 201


@rooms.route('/<string:room_code>/leave', methods=['POST'])
def leave_room(room_code):
    data = _body()
    user_id = _user_id(data)
    room = Room.query.filter_by(code=room_code.upper()).first_or_404()
    store = MembershipStore()
    member = store.get_member(room.id, user_id)
    if not member:
        return jsonify({'error': 'Not a member of this room'}), 400

    was_host = member.role == ROLE_HOST
    store.remove_member(room.id, user_id)
    if was_host:
        remaining = store.list_members(room.id)
        if remaining:
            remaining[0].role = ROLE_HOST
            current_app.logger.info(f"[host-handoff] room={room.code} host={remaining[0].user_id}")
    db.session.commit()
    current_app.logger.info(f"[room-leave] room={room.code} user={user_id}")

    # reading state repairs a session whose holder just left
    return _respond(get_coordinator().get_state(room.code))


@rooms.route('/<string:room_code>/start', methods=['POST'])
def start_session(room_code):
    data = _body()
    return _respond(get_coordinator().start_session(room_code, _user_id(data)))


@rooms.route('/<string:room_code>/turn', methods=['POST'])
def submit_turn(room_code):
    data = _body()
    content = data.get('content')
    if not content or not str(content).strip():
        return jsonify({'error': 'content is required'}), 400
    return _respond(get_coordinator().submit_turn(room_code, _user_id(data), str(content)))


@rooms.route('/<string:room_code>/photo-turn', methods=['POST'])
def submit_photo_turn(room_code):
    data = _body()
    return _respond(get_coordinator().submit_photo_turn(room_code, _user_id(data), data.get('image_url')))


@rooms.route('/<string:room_code>/nudge', methods=['POST'])
def send_nudge(room_code):
    data = _body()
    return _respond(get_coordinator().send_nudge(room_code, _user_id(data)))


@rooms.route('/<string:room_code>/nudge-status', methods=['GET'])
def nudge_status(room_code):
    return _respond(get_coordinator().get_nudge_status(room_code, request.args.get('user_id')))


@rooms.route('/<string:room_code>/skip', methods=['POST'])
def skip_turn(room_code):
    data = _body()
    return _respond(get_coordinator().skip_turn(room_code, _user_id(data)))


@rooms.route('/<string:room_code>/end', methods=['POST'])
def end_session(room_code):
    data = _body()
    return _respond(get_coordinator().end_session(room_code, _user_id(data)))


@rooms.route('/<string:room_code>/cooldown', methods=['POST'])
def update_cooldown(room_code):
    data = _body()
    return _respond(get_coordinator().update_cooldown(room_code, _user_id(data), data.get('cooldown_minutes')))


@rooms.route('/<string:room_code>/mode', methods=['POST'])
def update_prompt_mode(room_code):
    data = _body()
    return _respond(get_coordinator().update_prompt_mode(room_code, _user_id(data), data.get('prompt_mode')))


@rooms.route('/<string:room_code>/state', methods=['GET'])
def get_state(room_code):
    return _respond(get_coordinator().get_state(room_code))


@rooms.route('/<string:room_code>/messages', methods=['GET'])
def list_messages(room_code):
    room = Room.query.filter_by(code=room_code.upper()).first_or_404()
    try:
        limit = min(max(int(request.args.get('limit', 50)), 1), 200)
    except (TypeError, ValueError):
        limit = 50
    messages = (
        Message.query.filter_by(room_id=room.id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
        .all()
    )
    return jsonify([m.to_dict() for m in reversed(messages)])
