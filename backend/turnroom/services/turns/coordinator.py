import uuid
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from turnroom import db
from turnroom.models import Room, TurnSession, utcnow
from .constants import (
    ADVANCE_REASONS, COOLDOWN_CHOICES, MESSAGE_SYSTEM, MESSAGE_TURN_RESPONSE, MIN_MEMBERS,
    MISSED_TURN_LIMIT, NOTIFY_NUDGED_YOU, NOTIFY_YOUR_TURN, PROMPT_MODES, PROMPT_PHOTO,
    REASON_AUTO_SKIP, REASON_COMPLETED, REASON_HOST_SKIP, STALL_WINDOW,
)
from .engagement import EngagementPolicy
from .errors import (
    InCooldown, InsufficientMembers, InvalidSetting, InvariantViolation, MissingPhoto,
    NoActiveSession, NotAMember, NotYourTurn, PermissionDenied, RoomNotFound, SelfNudge,
    StaleTurn, TurnError, WrongPromptType,
)
from .membership import MembershipStore, MembershipView
from .nudges import NudgeLedger
from .prompt_bag import PromptBag
from .results import TurnResult
from .sinks import MessageStore, NotificationSink, broadcast_state


GAME_STARTED = 'Game started!'
GAME_STOPPED = 'Game stopped by host.'
GAME_ENDED = 'Game ended: not enough players.'


class Outbox:
    """Side effects gathered during a transaction, delivered after commit."""

    def __init__(self):
        self.notifications: List[Tuple[str, str, Dict[str, Any]]] = []
        self.rooms: List[str] = []
        # set when state written so far must survive a failed operation
        self.commit_on_failure = False

    def notify(self, user_id: str, kind: str, metadata: Dict[str, Any]) -> None:
        self.notifications.append((user_id, kind, metadata))

    def broadcast(self, room_code: str) -> None:
        if room_code not in self.rooms:
            self.rooms.append(room_code)

    def deliver(self, notifier, broadcaster: Callable[[str], None]) -> None:
        for user_id, kind, metadata in self.notifications:
            try:
                notifier.notify(user_id, kind, metadata)
            except Exception as exc:
                current_app.logger.warning(f"[notify-failed] user={user_id} kind={kind} error={exc}")
        for room_code in self.rooms:
            try:
                broadcaster(room_code)
            except Exception as exc:
                current_app.logger.warning(f"[broadcast-failed] room={room_code} error={exc}")


class TurnCoordinator:
    """Turn rotation for prompt-answering rooms.

    Every public operation runs as one transaction against the room's
    ``TurnSession`` row: the row is read with ``FOR UPDATE`` and rewritten
    through a compare-and-swap on ``instance_id``, so of two racing writers
    only one commits and the other reports ``StaleTurn`` or a plain
    precondition failure. Notifications are queued and sent after commit.
    """

    def __init__(self, membership: Optional[MembershipView] = None, prompts: Optional[PromptBag] = None,
                 nudges: Optional[NudgeLedger] = None, engagement: Optional[EngagementPolicy] = None,
                 messages: Optional[MessageStore] = None, notifier=None,
                 clock: Optional[Callable] = None, broadcaster: Optional[Callable[[str], None]] = None,
                 stall_window: timedelta = STALL_WINDOW):
        self.membership = membership or MembershipView()
        self.messages = messages or MessageStore()
        self.prompts = prompts or PromptBag()
        self.nudges = nudges or NudgeLedger()
        self.engagement = engagement or EngagementPolicy(self.membership.store, self.messages)
        self.notifier = notifier or NotificationSink()
        self.clock = clock or utcnow
        self.broadcaster = broadcaster or broadcast_state
        self.stall_window = stall_window

    @classmethod
    def from_config(cls, config, **overrides) -> 'TurnCoordinator':
        min_members = int(config.get('MIN_MEMBERS', MIN_MEMBERS))
        store = overrides.pop('store', None) or MembershipStore()
        messages = overrides.pop('messages', None) or MessageStore()
        membership = MembershipView(store, min_members=min_members)
        engagement = EngagementPolicy(
            store, messages, missed_turn_limit=int(config.get('MISSED_TURN_LIMIT', MISSED_TURN_LIMIT))
        )
        stall_hours = int(config.get('STALL_WINDOW_HOURS', STALL_WINDOW.total_seconds() // 3600))
        return cls(membership=membership, messages=messages, engagement=engagement,
                   stall_window=timedelta(hours=stall_hours), **overrides)

    # ---- public operations ----

    def start_session(self, room_code: str, caller_id: str) -> TurnResult:
        def op(outbox):
            now = self.clock()
            room = self._load_room(room_code)
            if not self.membership.is_host(room.id, caller_id):
                raise PermissionDenied('Only the host can start a session')
            members = self.membership.ordered_members(room.id)
            if len(members) < self.membership.min_members:
                raise InsufficientMembers()

            holder = members[0]
            prompt_text, prompt_type = self.prompts.next(room.id, room.prompt_mode)
            session = TurnSession.query.filter_by(room_id=room.id).with_for_update().first()
            if session is None:
                session = TurnSession(room_id=room.id)
                db.session.add(session)
            session.instance_id = _new_instance_id()
            session.holder_user_id = holder
            session.prompt_text = prompt_text
            session.prompt_type = prompt_type
            session.cooldown_until = None
            session.all_nudged_at = None
            session.last_completed_at = None
            session.turn_number = 0
            session.active = True
            session.started_at = now
            session.ended_at = None
            db.session.flush()

            self.messages.append(room.id, None, MESSAGE_SYSTEM, GAME_STARTED)
            if holder != caller_id:
                outbox.notify(holder, NOTIFY_YOUR_TURN, self._turn_metadata(room, prompt_text, prompt_type))
            outbox.broadcast(room.code)
            current_app.logger.info(
                f"[session-start] room={room.code} holder={holder} members={len(members)} instance={session.instance_id}"
            )
            return {'session': session.to_dict(now), 'members': members}

        return self._execute('session-start', op)

    def submit_turn(self, room_code: str, caller_id: str, content: str) -> TurnResult:
        def op(outbox):
            now = self.clock()
            room = self._load_room(room_code)
            session = self._require_session(room, outbox, now)
            self._check_can_answer(session, caller_id, now)
            if session.prompt_type == PROMPT_PHOTO:
                raise WrongPromptType('This prompt requires a photo.')
            message_id = self.messages.append(room.id, caller_id, MESSAGE_TURN_RESPONSE, content)
            data = self._advance(room, session, REASON_COMPLETED, None, outbox, now)
            data['message_id'] = message_id
            return data

        return self._execute('submit-turn', op)

    def submit_photo_turn(self, room_code: str, caller_id: str, image_url: Optional[str]) -> TurnResult:
        def op(outbox):
            now = self.clock()
            room = self._load_room(room_code)
            session = self._require_session(room, outbox, now)
            self._check_can_answer(session, caller_id, now)
            if session.prompt_type != PROMPT_PHOTO:
                raise WrongPromptType('Current prompt does not require a photo')
            if not isinstance(image_url, str) or not image_url.strip():
                raise MissingPhoto()
            payload = {'kind': 'photo_turn', 'prompt': session.prompt_text, 'image_url': image_url.strip()}
            message_id = self.messages.append(room.id, caller_id, MESSAGE_TURN_RESPONSE, payload)
            data = self._advance(room, session, REASON_COMPLETED, None, outbox, now)
            data['message_id'] = message_id
            return data

        return self._execute('submit-photo-turn', op)

    def send_nudge(self, room_code: str, caller_id: str) -> TurnResult:
        def op(outbox):
            now = self.clock()
            room = self._load_room(room_code)
            if not self.membership.is_member(room.id, caller_id):
                raise NotAMember()
            session = self._require_session(room, outbox, now)
            holder = session.holder_user_id
            if holder == caller_id:
                raise SelfNudge()

            self.nudges.record(room.id, caller_id, holder, session.instance_id, now)
            members = self.membership.ordered_members(room.id)
            all_nudged = self.nudges.all_nudged(room.id, session.instance_id, holder, members)
            stall_armed = False
            if all_nudged and session.all_nudged_at is None:
                # first writer wins; later nudges leave the stamp alone
                stamped = (
                    TurnSession.query
                    .filter_by(id=session.id, instance_id=session.instance_id, all_nudged_at=None)
                    .update({'all_nudged_at': now})
                )
                stall_armed = stamped == 1

            outbox.notify(holder, NOTIFY_NUDGED_YOU, {
                'nudger_user_id': caller_id,
                'prompt_text': session.prompt_text,
                'room_name': room.name,
            })
            outbox.broadcast(room.code)
            current_app.logger.info(
                f"[nudge] room={room.code} from={caller_id} to={holder} all_nudged={all_nudged} armed={stall_armed}"
            )
            return {
                'nudged_user_id': holder,
                'room_name': room.name,
                'all_nudged': all_nudged,
                'stall_armed': stall_armed,
            }

        return self._execute('nudge', op)

    def get_nudge_status(self, room_code: str, caller_id: Optional[str] = None) -> TurnResult:
        def op(outbox):
            now = self.clock()
            room = self._load_room(room_code)
            session = self._active_session(room)
            if session is None:
                return {'active': False}
            session = self._heal(room, session, outbox, now)
            if session is None:
                return {'active': False}
            members = self.membership.ordered_members(room.id)
            eligible_count, nudge_count = self.nudges.tally(
                room.id, session.instance_id, session.holder_user_id, members
            )
            return {
                'active': True,
                'eligible_count': eligible_count,
                'nudge_count': nudge_count,
                'all_nudged': eligible_count > 0 and nudge_count >= eligible_count,
                'all_nudged_at': session.all_nudged_at.isoformat() if session.all_nudged_at else None,
                'user_has_nudged': self.nudges.has_nudged(room.id, caller_id, session.instance_id),
                'holder_user_id': session.holder_user_id,
            }

        return self._execute('nudge-status', op)

    def advance(self, room_code: str, reason: str = REASON_COMPLETED,
                skipped_user_id: Optional[str] = None) -> TurnResult:
        def op(outbox):
            if reason not in ADVANCE_REASONS:
                raise InvalidSetting(f"Unknown advance reason '{reason}'")
            now = self.clock()
            room = self._load_room(room_code)
            session = self._require_session(room, outbox, now)
            return self._advance(room, session, reason, skipped_user_id, outbox, now)

        return self._execute('advance', op)

    def skip_turn(self, room_code: str, caller_id: str) -> TurnResult:
        def op(outbox):
            now = self.clock()
            room = self._load_room(room_code)
            if not self.membership.is_host(room.id, caller_id):
                raise PermissionDenied('Only the host can skip a turn')
            session = self._require_session(room, outbox, now)
            return self._advance(room, session, REASON_HOST_SKIP, session.holder_user_id, outbox, now)

        return self._execute('skip-turn', op)

    def end_session(self, room_code: str, caller_id: str) -> TurnResult:
        def op(outbox):
            now = self.clock()
            room = self._load_room(room_code)
            if not self.membership.is_host(room.id, caller_id):
                raise PermissionDenied('Only the host can stop the game')
            session = self._active_session(room)
            if session is None:
                raise NoActiveSession()
            self._end(room, session, outbox, now, GAME_STOPPED)
            return {'ended': True}

        return self._execute('session-end', op)

    def stall_sweep(self) -> List[Dict[str, Any]]:
        """Auto-skip every turn left unanswered past the stall window.

        Candidates are re-read and re-checked one room at a time, so a turn
        that advanced after the scan (stamp cleared) is left alone, as is a
        turn whose current eligible members have not all nudged.
        """
        now = self.clock()
        cutoff = now - self.stall_window
        candidates = [
            room_id for (room_id,) in db.session.query(TurnSession.room_id).filter(
                TurnSession.active.is_(True),
                TurnSession.all_nudged_at.isnot(None),
                TurnSession.all_nudged_at <= cutoff,
            )
        ]
        db.session.commit()

        skipped = []
        for room_id in candidates:
            def op(outbox, room_id=room_id):
                room = db.session.get(Room, room_id)
                session = TurnSession.query.filter_by(room_id=room_id, active=True).with_for_update().first()
                if (room is None or session is None or session.all_nudged_at is None
                        or session.all_nudged_at > cutoff):
                    return {'skipped': False}
                holder = session.holder_user_id
                # a member who joined after the stamp has not nudged yet
                members = self.membership.ordered_members(room.id)
                if not self.nudges.all_nudged(room.id, session.instance_id, holder, members):
                    current_app.logger.info(f"[stall-sweep-hold] room={room.code} holder={holder} not all nudged")
                    return {'skipped': False}
                data = self._advance(room, session, REASON_AUTO_SKIP, holder, outbox, now)
                return {
                    'skipped': True,
                    'room_id': room.id,
                    'room_code': room.code,
                    'skipped_user_id': holder,
                    'removed': data['removed'],
                }

            try:
                result = self._execute('stall-sweep', op)
            except Exception:
                current_app.logger.exception(f"[stall-sweep-error] room_id={room_id}")
                continue
            if result.ok and result.data.get('skipped'):
                entry = dict(result.data)
                entry.pop('skipped')
                skipped.append(entry)

        current_app.logger.info(f"[stall-sweep] candidates={len(candidates)} skipped={len(skipped)}")
        return skipped

    def update_cooldown(self, room_code: str, caller_id: str, minutes) -> TurnResult:
        def op(outbox):
            room = self._load_room(room_code)
            if not self.membership.is_member(room.id, caller_id):
                raise NotAMember()
            try:
                value = int(minutes)
            except (TypeError, ValueError):
                value = None
            if value not in COOLDOWN_CHOICES:
                raise InvalidSetting(
                    'Invalid interval. Must be one of ' + ', '.join(str(c) for c in COOLDOWN_CHOICES) + ' minutes'
                )
            room.cooldown_minutes = value
            session = self._active_session(room)
            if session is not None:
                if value and session.last_completed_at is not None:
                    session.cooldown_until = session.last_completed_at + timedelta(minutes=value)
                else:
                    session.cooldown_until = None
            outbox.broadcast(room.code)
            return {'room': room.to_dict()}

        return self._execute('update-cooldown', op)

    def update_prompt_mode(self, room_code: str, caller_id: str, mode: str) -> TurnResult:
        def op(outbox):
            room = self._load_room(room_code)
            if not self.membership.is_member(room.id, caller_id):
                raise NotAMember()
            if mode not in PROMPT_MODES:
                raise InvalidSetting('Invalid prompt mode')
            if room.prompt_mode != mode:
                room.prompt_mode = mode
                self.prompts.reset(room.id, mode)
            outbox.broadcast(room.code)
            return {'room': room.to_dict()}

        return self._execute('update-mode', op)

    def get_state(self, room_code: str) -> TurnResult:
        def op(outbox):
            now = self.clock()
            room = self._load_room(room_code)
            session = self._active_session(room)
            if session is not None:
                session = self._heal(room, session, outbox, now)
            if session is None:
                session = TurnSession.query.filter_by(room_id=room.id).first()
            members = [m.to_dict() for m in self.membership.store.list_members(room.id)]
            return {
                'room': room.to_dict(),
                'members': members,
                'session': session.to_dict(now) if session is not None else None,
            }

        return self._execute('state', op)

    # ---- transaction plumbing ----

    def _execute(self, op_name: str, fn: Callable[[Outbox], Dict[str, Any]]) -> TurnResult:
        outbox = Outbox()
        try:
            data = fn(outbox)
            db.session.commit()
        except InvariantViolation as exc:
            db.session.rollback()
            current_app.logger.error(f"[{op_name}-invariant] code={exc.code} {exc.message}")
            raise
        except TurnError as exc:
            if outbox.commit_on_failure:
                db.session.commit()
                outbox.deliver(self.notifier, self.broadcaster)
            else:
                db.session.rollback()
            current_app.logger.info(f"[{op_name}-rejected] code={exc.code} {exc.message}")
            return TurnResult.failure(exc)
        except IntegrityError as exc:
            # lost a race on a unique row (session or used prompt)
            db.session.rollback()
            current_app.logger.info(f"[{op_name}-conflict] {exc.orig}")
            return TurnResult.failure(StaleTurn())
        except Exception:
            db.session.rollback()
            raise
        outbox.deliver(self.notifier, self.broadcaster)
        return TurnResult.success(**data)

    # ---- helpers ----

    def _load_room(self, room_code: str) -> Room:
        room = Room.query.filter_by(code=(room_code or '').upper()).first()
        if room is None:
            raise RoomNotFound(room_code)
        return room

    def _active_session(self, room: Room) -> Optional[TurnSession]:
        return TurnSession.query.filter_by(room_id=room.id, active=True).with_for_update().first()

    def _require_session(self, room: Room, outbox: Outbox, now) -> TurnSession:
        session = self._active_session(room)
        if session is None:
            raise NoActiveSession()
        session = self._heal(room, session, outbox, now)
        if session is None:
            raise NoActiveSession()
        return session

    def _heal(self, room: Room, session: TurnSession, outbox: Outbox, now) -> Optional[TurnSession]:
        """Repair a session whose holder is no longer a member.

        Returns the usable session, or None if the room dropped below the
        member minimum and the session was ended.
        """
        members = self.membership.ordered_members(room.id)
        if len(members) < self.membership.min_members:
            self._end(room, session, outbox, now, GAME_ENDED)
            outbox.commit_on_failure = True
            return None
        if session.holder_user_id in members:
            return session

        stale_holder = session.holder_user_id
        new_holder = self.membership.next_member(room.id, stale_holder)
        self._swap(session, session.instance_id, {
            'holder_user_id': new_holder,
            'instance_id': _new_instance_id(),
            'all_nudged_at': None,
        })
        outbox.notify(new_holder, NOTIFY_YOUR_TURN,
                      self._turn_metadata(room, session.prompt_text, session.prompt_type))
        outbox.broadcast(room.code)
        current_app.logger.info(f"[heal] room={room.code} stale_holder={stale_holder} holder={new_holder}")
        return session

    def _check_can_answer(self, session: TurnSession, caller_id: str, now) -> None:
        if session.holder_user_id != caller_id:
            raise NotYourTurn()
        if session.cooldown_until is not None and session.cooldown_until > now:
            raise InCooldown(session.cooldown_until)

    def _advance(self, room: Room, session: TurnSession, reason: str, skipped_user_id: Optional[str],
                 outbox: Outbox, now) -> Dict[str, Any]:
        prior_holder = session.holder_user_id
        seen_instance = session.instance_id

        outcome = self.engagement.apply(room, prior_holder, reason, skipped_user_id, outbox.notify)

        next_holder = self.membership.next_member(room.id, skipped_user_id or prior_holder)
        if next_holder is None:
            self._end(room, session, outbox, now, GAME_ENDED)
            return {
                'ended': True,
                'reason': reason,
                'previous_holder_user_id': prior_holder,
                'holder_user_id': None,
                'skipped_user_id': outcome.skipped_user_id,
                'removed': outcome.removed,
            }

        prompt_text, prompt_type = self.prompts.next(room.id, room.prompt_mode)
        cooldown_until = None
        if room.cooldown_minutes:
            cooldown_until = now + timedelta(minutes=room.cooldown_minutes)

        self._swap(session, seen_instance, {
            'holder_user_id': next_holder,
            'instance_id': _new_instance_id(),
            'prompt_text': prompt_text,
            'prompt_type': prompt_type,
            'cooldown_until': cooldown_until,
            'all_nudged_at': None,
            'last_completed_at': now,
            'turn_number': (session.turn_number or 0) + 1,
        })

        if next_holder != prior_holder:
            outbox.notify(next_holder, NOTIFY_YOUR_TURN, self._turn_metadata(room, prompt_text, prompt_type))
        outbox.broadcast(room.code)
        current_app.logger.info(
            f"[advance] room={room.code} reason={reason} from={prior_holder} to={next_holder} "
            f"turn={session.turn_number} removed={outcome.removed}"
        )
        return {
            'ended': False,
            'reason': reason,
            'previous_holder_user_id': prior_holder,
            'holder_user_id': next_holder,
            'instance_id': session.instance_id,
            'prompt_text': prompt_text,
            'prompt_type': prompt_type,
            'cooldown_until': cooldown_until.isoformat() if cooldown_until else None,
            'skipped_user_id': outcome.skipped_user_id,
            'removed': outcome.removed,
        }

    def _end(self, room: Room, session: TurnSession, outbox: Outbox, now, text: str) -> None:
        self._swap(session, session.instance_id, {
            'active': False,
            'ended_at': now,
            'all_nudged_at': None,
            'cooldown_until': None,
        })
        self.messages.append(room.id, None, MESSAGE_SYSTEM, text)
        outbox.broadcast(room.code)
        current_app.logger.info(f"[session-end] room={room.code} reason={text!r}")

    def _swap(self, session: TurnSession, seen_instance: str, values: Dict[str, Any]) -> None:
        """Compare-and-swap rewrite of the session row keyed on the instance token."""
        updated = (
            TurnSession.query
            .filter_by(id=session.id, instance_id=seen_instance, active=True)
            .update(values, synchronize_session='evaluate')
        )
        if updated != 1:
            raise StaleTurn()

    def _turn_metadata(self, room: Room, prompt_text: str, prompt_type: str) -> Dict[str, Any]:
        return {
            'room_code': room.code,
            'room_name': room.name,
            'prompt_text': prompt_text,
            'prompt_type': prompt_type,
        }


def _new_instance_id() -> str:
    return uuid.uuid4().hex


def get_coordinator() -> TurnCoordinator:
    coordinator = current_app.extensions.get('turn_coordinator')
    if coordinator is None:
        coordinator = TurnCoordinator.from_config(current_app.config)
        current_app.extensions['turn_coordinator'] = coordinator
    return coordinator
