from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Literal

from .errors import RoomError

logger = logging.getLogger(__name__)


RoomPhase = Literal["lobby", "in_progress", "concluded"]
TurnPolicy = Literal["random", "first"]
WinOutcome = Literal["win", "draw"]

# A round cannot go on (or be renegotiated) with fewer players than this.
MIN_ACTIVE_PLAYERS = 2


@dataclass
class Participant:
    id: str
    username: str
    seat_number: int = 0


@dataclass
class RematchRequest:
    requester_id: str
    requester_username: str


def next_turn_index(count: int, index: int) -> int | None:
    """Index of the seat after ``index`` in a ring of ``count`` seats."""
    if count <= 0:
        return None
    return (index + 1) % count


@dataclass
class Room:
    """One match. All mutation goes through the methods below.

    Every method validates before it mutates: a raised ``RoomError`` means the
    room is exactly as it was before the call.
    """

    code: str
    capacity: int = 2
    min_number: int = 1
    max_number: int = 25
    first_turn_policy: TurnPolicy = "random"
    participants: list[Participant] = field(default_factory=list)
    started: bool = False
    turn_index: int = 0
    current_turn_holder: str | None = None
    marked_numbers: list[int] = field(default_factory=list)
    winner_id: str | None = None
    winner_username: str | None = None
    draw: bool = False
    pending_rematch: RematchRequest | None = None
    chat_history: list[dict] = field(default_factory=list)
    chat_history_limit: int = 200
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    # -- queries ---------------------------------------------------------

    @property
    def phase(self) -> RoomPhase:
        if self.started:
            return "in_progress"
        if self.winner_id is not None or self.draw:
            return "concluded"
        return "lobby"

    @property
    def is_empty(self) -> bool:
        return not self.participants

    @property
    def is_full(self) -> bool:
        return len(self.participants) >= self.capacity

    @property
    def last_marked_number(self) -> int | None:
        return self.marked_numbers[-1] if self.marked_numbers else None

    def get_participant(self, participant_id: str) -> Participant | None:
        for p in self.participants:
            if p.id == participant_id:
                return p
        return None

    def index_of(self, participant_id: str | None) -> int:
        for idx, p in enumerate(self.participants):
            if p.id == participant_id:
                return idx
        return -1

    def _require_member(self, participant_id: str) -> Participant:
        p = self.get_participant(participant_id)
        if p is None:
            raise RoomError("not_in_room", "You are not in this room.")
        return p

    # -- lobby -----------------------------------------------------------

    def join(self, participant_id: str, username: str) -> Participant:
        if self.get_participant(participant_id) is not None:
            raise RoomError("already_in_room", "You are already in this room.")
        if self.is_full:
            raise RoomError("room_full", f"Room is full (max {self.capacity} players).")
        if self.phase != "lobby":
            raise RoomError("already_started", "Game has already started.")

        participant = Participant(
            id=participant_id,
            username=username,
            seat_number=len(self.participants) + 1,
        )
        self.participants.append(participant)
        logger.info("room %s: %s joined as seat %d", self.code, username, participant.seat_number)
        return participant

    def start(self, sender_id: str) -> Participant:
        """Start a round. Returns the participant who moves first."""
        self._require_member(sender_id)
        if self.started:
            raise RoomError("already_started", "Game has already started.")
        if self.phase == "concluded":
            raise RoomError("round_over", "The round is over. Request a rematch to play again.")
        if len(self.participants) < self.capacity:
            raise RoomError("not_enough_players", f"Need {self.capacity} players to start the game.")

        self.marked_numbers = []
        self.winner_id = None
        self.winner_username = None
        self.draw = False
        self.pending_rematch = None
        self.started = True

        if self.first_turn_policy == "first":
            self.turn_index = 0
        else:
            self.turn_index = self.rng.randrange(len(self.participants))
        first = self.participants[self.turn_index]
        self.current_turn_holder = first.id
        logger.info("room %s: round started, %s moves first", self.code, first.username)
        return first

    # -- round -----------------------------------------------------------

    def _validate_number(self, number) -> int:
        # bool is an int subclass; True must not pass as 1.
        if isinstance(number, bool) or not isinstance(number, int):
            raise RoomError("invalid_number", "Number must be an integer.")
        if number < self.min_number or number > self.max_number:
            raise RoomError(
                "invalid_number",
                f"Number must be between {self.min_number} and {self.max_number}.",
            )
        return number

    def mark_number(self, sender_id: str, number) -> int:
        self._require_member(sender_id)
        n = self._validate_number(number)
        if self.phase != "in_progress":
            raise RoomError("not_active", "Game not active or not started.")
        if self.current_turn_holder != sender_id:
            raise RoomError("not_your_turn", "It is not your turn.")
        if n in self.marked_numbers:
            raise RoomError("already_called", "Number already called.")

        self.marked_numbers.append(n)
        self.advance_turn()
        logger.info("room %s: %s marked %d", self.code, sender_id, n)
        return n

    def advance_turn(self) -> None:
        idx = next_turn_index(len(self.participants), self.turn_index)
        if idx is None:
            self.current_turn_holder = None
            return
        self.turn_index = idx
        self.current_turn_holder = self.participants[idx].id

    def declare_win(self, sender_id: str) -> WinOutcome:
        """Arbitrate a win claim.

        The first claim of a running round wins outright. A claim from another
        participant before the room is reset turns the result into a draw; the
        first winner stays recorded. Anything else is rejected.
        """
        sender = self._require_member(sender_id)
        phase = self.phase

        if phase == "in_progress":
            self.winner_id = sender.id
            self.winner_username = sender.username
            self.started = False
            self.current_turn_holder = None
            logger.info("room %s: %s declared a win", self.code, sender.username)
            return "win"

        if phase == "concluded" and not self.draw and self.winner_id != sender.id:
            self.draw = True
            logger.info(
                "room %s: counter-claim by %s after %s, round is a draw",
                self.code,
                sender.username,
                self.winner_username,
            )
            return "draw"

        raise RoomError("cannot_declare", "Cannot declare win. Game not active or already won.")

    # -- rematch ---------------------------------------------------------

    def request_rematch(self, sender_id: str) -> RematchRequest:
        sender = self._require_member(sender_id)
        if self.phase != "concluded":
            raise RoomError("round_not_over", "A rematch can only be requested after the round ends.")
        if self.pending_rematch is not None:
            raise RoomError("rematch_pending", "A rematch request is already pending.")

        self.pending_rematch = RematchRequest(requester_id=sender.id, requester_username=sender.username)
        return self.pending_rematch

    def _require_answerable_rematch(self, sender_id: str) -> RematchRequest:
        self._require_member(sender_id)
        request = self.pending_rematch
        if request is None:
            raise RoomError("no_rematch_request", "There is no rematch request to answer.")
        if request.requester_id == sender_id:
            raise RoomError("own_rematch_request", "You cannot answer your own rematch request.")
        return request

    def accept_rematch(self, sender_id: str) -> None:
        self._require_answerable_rematch(sender_id)
        self.reset_round()

    def decline_rematch(self, sender_id: str) -> RematchRequest:
        request = self._require_answerable_rematch(sender_id)
        self.pending_rematch = None
        return request

    def reset_round(self) -> None:
        self.started = False
        self.turn_index = 0
        self.current_turn_holder = None
        self.marked_numbers = []
        self.winner_id = None
        self.winner_username = None
        self.draw = False
        self.pending_rematch = None
        self._renumber_seats()
        logger.info("room %s: round reset", self.code)

    def _renumber_seats(self) -> None:
        for idx, p in enumerate(self.participants):
            p.seat_number = idx + 1

    # -- departure -------------------------------------------------------

    def remove_participant(self, participant_id: str) -> tuple[Participant | None, bool]:
        """Remove a participant. Returns ``(departed, was_reset)``."""
        idx = self.index_of(participant_id)
        if idx < 0:
            return None, False

        phase_before = self.phase
        was_holder = self.current_turn_holder == participant_id
        departed = self.participants.pop(idx)

        if self.pending_rematch is not None and self.pending_rematch.requester_id == participant_id:
            self.pending_rematch = None

        if phase_before == "in_progress":
            if was_holder:
                if self.participants:
                    holder_idx = self.index_of(self.current_turn_holder)
                    self.turn_index = 0 if holder_idx < 0 else holder_idx
                    self.advance_turn()
                else:
                    self.current_turn_holder = None
            else:
                # Keep turn_index pointing at the holder after the list shifted.
                holder_idx = self.index_of(self.current_turn_holder)
                if holder_idx >= 0:
                    self.turn_index = holder_idx

        was_reset = False
        if self.participants and phase_before != "lobby" and len(self.participants) < MIN_ACTIVE_PLAYERS:
            self.reset_round()
            was_reset = True
        elif phase_before == "lobby":
            self._renumber_seats()

        logger.info("room %s: %s left (%d remaining)", self.code, departed.username, len(self.participants))
        return departed, was_reset

    # -- chat ------------------------------------------------------------

    def add_chat_message(self, sender_id: str, text: str) -> dict:
        sender = self._require_member(sender_id)
        msg = {"senderId": sender.id, "senderUsername": sender.username, "text": text}
        self.chat_history.append(msg)
        if len(self.chat_history) > self.chat_history_limit:
            self.chat_history = self.chat_history[-self.chat_history_limit:]
        return msg
