from __future__ import annotations

import logging
import random
import string
from threading import RLock

from flask import current_app

from ..config import Config
from .errors import RoomError
from .models import Room

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def normalize_code(code) -> str:
    return str(code or "").strip().upper()


class RoomRegistry:
    """In-memory code -> Room map.

    ``lock`` guards both the map and every Room in it; callers hold it for the
    whole of one event so each transition is applied atomically.
    """

    def __init__(
        self,
        capacity: int = 2,
        code_length: int = 4,
        min_number: int = 1,
        max_number: int = 25,
        first_turn_policy: str = "random",
        chat_history_limit: int = 200,
        rng: random.Random | None = None,
    ) -> None:
        self.lock = RLock()
        self._rooms: dict[str, Room] = {}
        self.capacity = capacity
        self.code_length = code_length
        self.min_number = min_number
        self.max_number = max_number
        self.first_turn_policy = first_turn_policy
        self.chat_history_limit = chat_history_limit
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config) -> RoomRegistry:
        return cls(
            capacity=config.get("ROOM_CAPACITY", Config.ROOM_CAPACITY),
            code_length=config.get("ROOM_CODE_LENGTH", Config.ROOM_CODE_LENGTH),
            min_number=config.get("MIN_NUMBER", Config.MIN_NUMBER),
            max_number=config.get("MAX_NUMBER", Config.MAX_NUMBER),
            first_turn_policy=config.get("FIRST_TURN_POLICY", Config.FIRST_TURN_POLICY),
            chat_history_limit=config.get("CHAT_HISTORY_LIMIT", Config.CHAT_HISTORY_LIMIT),
        )

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, code) -> bool:
        return normalize_code(code) in self._rooms

    def generate_code(self) -> str:
        with self.lock:
            if len(self._rooms) >= len(CODE_ALPHABET) ** self.code_length:
                raise RoomError("no_codes_available", "No free room codes. Try again later.")

            code = "".join(self._rng.choices(CODE_ALPHABET, k=self.code_length))
            while code in self._rooms:
                code = "".join(self._rng.choices(CODE_ALPHABET, k=self.code_length))
            return code

    def create_room(self) -> Room:
        with self.lock:
            code = self.generate_code()
            room = Room(
                code=code,
                capacity=self.capacity,
                min_number=self.min_number,
                max_number=self.max_number,
                first_turn_policy=self.first_turn_policy,  # type: ignore[arg-type]
                chat_history_limit=self.chat_history_limit,
                rng=self._rng,
            )
            self._rooms[code] = room
            logger.info("room %s created", code)
            return room

    def get(self, code) -> Room | None:
        with self.lock:
            return self._rooms.get(normalize_code(code))

    def delete(self, code) -> bool:
        with self.lock:
            code = normalize_code(code)
            if code in self._rooms:
                del self._rooms[code]
                logger.info("room %s destroyed", code)
                return True
            return False


def current_registry() -> RoomRegistry:
    return current_app.extensions["bingo.registry"]


def room_public_state(room: Room) -> dict:
    """Canonical snapshot sent to clients. Never includes connection handles."""
    pending = None
    if room.pending_rematch is not None:
        pending = {
            "requesterId": room.pending_rematch.requester_id,
            "requesterUsername": room.pending_rematch.requester_username,
        }

    return {
        "code": room.code,
        "phase": room.phase,
        "capacity": room.capacity,
        "participants": [
            {"id": p.id, "username": p.username, "seatNumber": p.seat_number}
            for p in room.participants
        ],
        "started": room.started,
        "currentTurnHolder": room.current_turn_holder,
        "markedNumbers": list(room.marked_numbers),
        "winnerId": room.winner_id,
        "winnerUsername": room.winner_username,
        "draw": room.draw,
        "pendingRematchRequest": pending,
    }
