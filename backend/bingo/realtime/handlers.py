from __future__ import annotations

import functools
import logging
from typing import Any

from flask import current_app, request
from flask_socketio import SocketIO

from ..config import Config
from ..game import service
from ..game.errors import RoomError
from ..game.models import Room
from ..game.service import RoomRegistry
from . import events
from .broadcaster import Broadcaster
from .session import SessionStore

logger = logging.getLogger(__name__)


class StaleBinding(Exception):
    """The connection is bound to a room that no longer exists."""


def _payload(data: Any) -> dict:
    return data if isinstance(data, dict) else {}


def _clean_username(raw: Any, max_length: int) -> str:
    if not isinstance(raw, str):
        raise RoomError("invalid_payload", "Username is required.")
    n = raw.strip()
    if not n:
        raise RoomError("invalid_payload", "Username is required.")
    if len(n) > max_length:
        raise RoomError("invalid_payload", f"Username must be at most {max_length} characters.")
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        raise RoomError("invalid_payload", "Username contains invalid characters.")
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            raise RoomError("invalid_payload", "Username contains invalid characters.")
    return n


def _clean_text(raw: Any, max_length: int) -> str:
    t = raw.strip() if isinstance(raw, str) else ""
    if not t:
        raise RoomError("invalid_payload", "Message is empty.")
    return t[:max_length]


def register_socketio_handlers(socketio: SocketIO, registry: RoomRegistry, sessions: SessionStore) -> Broadcaster:
    """Register the room protocol on ``socketio``.

    Every handler mutates and broadcasts while holding ``registry.lock``, so
    clients see broadcasts in the same order the mutations were applied.
    """
    broadcaster = Broadcaster(socketio, registry)

    def _setting(name: str):
        return current_app.config.get(name, getattr(Config, name))

    def _bound_room(sid: str) -> Room:
        """Room the connection is in. Caller must hold ``registry.lock``."""
        code = sessions.room_of(sid)
        if code is None:
            raise RoomError("not_in_room", "You are not in a room.")
        room = registry.get(code)
        if room is None:
            sessions.unbind(sid)
            raise StaleBinding(code)
        return room

    def guarded(handler):
        """Turn rejections into a sender-only ``room:error`` plus a failed ack."""

        @functools.wraps(handler)
        def wrapper(*args):
            try:
                return handler(*args)
            except RoomError as exc:
                logger.debug("rejected %s from %s: %s", handler.__name__, request.sid, exc.code)
                broadcaster.send(request.sid, events.ROOM_ERROR, exc.as_payload())
                return {"ok": False, "error": exc.code}
            except StaleBinding as exc:
                logger.info("ignored %s from %s: room %s is gone", handler.__name__, request.sid, exc)
                return {"ok": False, "error": "room_not_found"}

        return wrapper

    def _depart(sid: str, explicit: bool) -> bool:
        with registry.lock:
            code = sessions.unbind(sid)
            if code is None:
                return False
            room = registry.get(code)
            if room is None:
                logger.info("%s left room %s after it was torn down", sid, code)
                return False

            departed, was_reset = room.remove_participant(sid)
            destroyed = room.is_empty
            if destroyed:
                registry.delete(code)

            if explicit:
                broadcaster.exit(sid, code)
                broadcaster.send(sid, events.ROOM_LEFT, {"roomCode": code})

            if departed is not None and not destroyed:
                broadcaster.publish(code, events.ROOM_USER_LEFT, {"roomCode": code, "username": departed.username})
                if was_reset:
                    broadcaster.publish(code, events.GAME_RESET, {"roomCode": code})
                broadcaster.emit_state(code, service.room_public_state(room))
            return departed is not None

    @socketio.on("connect")
    def on_connect(auth=None):
        logger.debug("connected: %s", request.sid)

    @socketio.on(events.ROOM_CREATE)
    @guarded
    def room_create(data=None):
        payload = _payload(data)
        sid = request.sid
        username = _clean_username(payload.get("username"), _setting("USERNAME_MAX_LENGTH"))

        with registry.lock:
            if sessions.room_of(sid):
                raise RoomError("already_in_room", "You are already in a room. Leave it first.")
            room = registry.create_room()
            room.join(sid, username)
            sessions.bind(sid, room.code)
            code = room.code

            broadcaster.enter(sid, code)
            broadcaster.send(sid, events.ROOM_CREATED, {"roomCode": code})
            broadcaster.emit_state(code, service.room_public_state(room))
        return {"ok": True, "roomCode": code}

    @socketio.on(events.ROOM_JOIN)
    @guarded
    def room_join(data=None):
        payload = _payload(data)
        sid = request.sid
        code = service.normalize_code(payload.get("roomCode"))
        if not code:
            raise RoomError("invalid_payload", "Room code is required.")
        username = _clean_username(payload.get("username"), _setting("USERNAME_MAX_LENGTH"))

        with registry.lock:
            if sessions.room_of(sid):
                raise RoomError("already_in_room", "You are already in a room. Leave it first.")
            room = registry.get(code)
            if room is None:
                raise RoomError("room_not_found", "Game not found. Please check the code.")
            room.join(sid, username)
            sessions.bind(sid, code)

            broadcaster.enter(sid, code)
            broadcaster.send(sid, events.ROOM_JOINED, {"roomCode": code})
            broadcaster.send(sid, events.CHAT_SYNC, {"roomCode": code, "messages": list(room.chat_history)})
            broadcaster.publish(code, events.ROOM_USER_JOINED, {"roomCode": code, "username": username}, skip_sid=sid)
            broadcaster.emit_state(code, service.room_public_state(room))
        return {"ok": True, "roomCode": code}

    @socketio.on(events.ROOM_LEAVE)
    @guarded
    def room_leave(data=None):
        if not _depart(request.sid, explicit=True):
            return {"ok": False, "error": "not_in_room"}
        return {"ok": True}

    @socketio.on(events.GAME_START)
    @guarded
    def game_start(data=None):
        sid = request.sid
        with registry.lock:
            room = _bound_room(sid)
            first = room.start(sid)
            broadcaster.emit_state(room.code, service.room_public_state(room))
        return {"ok": True, "currentTurnHolder": first.id}

    @socketio.on(events.GAME_MARK)
    @guarded
    def game_mark(data=None):
        sid = request.sid
        # Older clients send the bare number.
        number = data.get("number") if isinstance(data, dict) else data

        with registry.lock:
            room = _bound_room(sid)
            n = room.mark_number(sid, number)
            code = room.code
            broadcaster.publish(code, events.GAME_NUMBER_MARKED, {"roomCode": code, "number": n, "by": sid})
            broadcaster.emit_state(code, service.room_public_state(room))
        return {"ok": True, "number": n}

    @socketio.on(events.GAME_DECLARE_WIN)
    @guarded
    def game_declare_win(data=None):
        sid = request.sid
        with registry.lock:
            room = _bound_room(sid)
            outcome = room.declare_win(sid)
            code = room.code
            if outcome == "win":
                broadcaster.publish(
                    code,
                    events.GAME_WIN,
                    {"roomCode": code, "winnerId": room.winner_id, "winnerUsername": room.winner_username},
                )
            else:
                broadcaster.publish(code, events.GAME_DRAW, {"roomCode": code, "number": room.last_marked_number})
            broadcaster.emit_state(code, service.room_public_state(room))
        return {"ok": True, "outcome": outcome}

    @socketio.on(events.REMATCH_REQUEST)
    @guarded
    def rematch_request(data=None):
        sid = request.sid
        with registry.lock:
            room = _bound_room(sid)
            req = room.request_rematch(sid)
            code = room.code
            broadcaster.publish(
                code,
                events.REMATCH_REQUESTED,
                {"roomCode": code, "requesterId": req.requester_id, "requesterUsername": req.requester_username},
                skip_sid=sid,
            )
            broadcaster.emit_state(code, service.room_public_state(room))
        return {"ok": True}

    @socketio.on(events.REMATCH_ACCEPT)
    @guarded
    def rematch_accept(data=None):
        sid = request.sid
        with registry.lock:
            room = _bound_room(sid)
            room.accept_rematch(sid)
            code = room.code
            broadcaster.publish(code, events.GAME_RESET, {"roomCode": code})
            broadcaster.emit_state(code, service.room_public_state(room))
        return {"ok": True}

    @socketio.on(events.REMATCH_DECLINE)
    @guarded
    def rematch_decline(data=None):
        sid = request.sid
        with registry.lock:
            room = _bound_room(sid)
            room.decline_rematch(sid)
            code = room.code
            username = room.get_participant(sid).username
            broadcaster.publish(code, events.REMATCH_DECLINED, {"roomCode": code, "username": username})
            broadcaster.emit_state(code, service.room_public_state(room))
        return {"ok": True}

    @socketio.on(events.CHAT_MESSAGE)
    @guarded
    def chat_message(data=None):
        sid = request.sid
        raw = data.get("text") if isinstance(data, dict) else data

        with registry.lock:
            room = _bound_room(sid)
            text = _clean_text(raw, _setting("MESSAGE_MAX_LENGTH"))
            msg = room.add_chat_message(sid, text)
            code = room.code
            broadcaster.publish(code, events.CHAT_MESSAGE, {"roomCode": code, **msg})
        return {"ok": True}

    @socketio.on("disconnect")
    def on_disconnect(*args):
        sid = request.sid
        try:
            _depart(sid, explicit=False)
        finally:
            sessions.drop(sid)
        logger.debug("disconnected: %s", sid)

    @socketio.on_error_default
    def on_error(exc):
        # One room's failure must not take down the connection or other rooms.
        logger.exception("unhandled error in socket event from %s", request.sid)
        broadcaster.send(request.sid, events.ROOM_ERROR, {"error": "internal_error", "message": "Internal error."})
        return {"ok": False, "error": "internal_error"}

    return broadcaster
