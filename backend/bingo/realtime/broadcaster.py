from __future__ import annotations

import logging

from flask_socketio import SocketIO, join_room, leave_room

from ..game import service
from ..game.service import RoomRegistry
from . import events

logger = logging.getLogger(__name__)


class Broadcaster:
    """Fan-out over Socket.IO rooms; one Socket.IO room per game room code."""

    def __init__(self, socketio: SocketIO, registry: RoomRegistry, namespace: str = "/") -> None:
        self.socketio = socketio
        self.registry = registry
        self.namespace = namespace

    def enter(self, sid: str, room_code: str) -> None:
        join_room(room_code, sid=sid, namespace=self.namespace)

    def exit(self, sid: str, room_code: str) -> None:
        leave_room(room_code, sid=sid, namespace=self.namespace)

    def send(self, sid: str, event: str, payload: dict) -> None:
        self.socketio.emit(event, payload, to=sid, namespace=self.namespace)

    def publish(self, room_code: str, event: str, payload: dict, skip_sid: str | None = None) -> None:
        self.socketio.emit(event, payload, to=room_code, skip_sid=skip_sid, namespace=self.namespace)

    def emit_state(self, room_code: str, snapshot: dict | None = None) -> None:
        if snapshot is None:
            with self.registry.lock:
                room = self.registry.get(room_code)
                if room is None:
                    # Expected while a room is being torn down.
                    logger.debug("state for vanished room %s not sent", room_code)
                    return
                snapshot = service.room_public_state(room)

        self.publish(room_code, events.ROOM_STATE, snapshot)
