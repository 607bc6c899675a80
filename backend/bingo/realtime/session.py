from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SessionBinding:
    """Binds one live connection to at most one room code."""

    sid: str
    room_code: str | None = None


class SessionStore:
    def __init__(self) -> None:
        self._by_sid: dict[str, SessionBinding] = {}

    def get(self, sid: str) -> SessionBinding:
        binding = self._by_sid.get(sid)
        if binding is None:
            binding = SessionBinding(sid=sid)
            self._by_sid[sid] = binding
        return binding

    def room_of(self, sid: str) -> str | None:
        binding = self._by_sid.get(sid)
        return binding.room_code if binding else None

    def bind(self, sid: str, room_code: str) -> None:
        self.get(sid).room_code = room_code

    def unbind(self, sid: str) -> str | None:
        """Clear the binding and return the code it pointed at."""
        binding = self._by_sid.get(sid)
        if binding is None:
            return None
        code, binding.room_code = binding.room_code, None
        return code

    def drop(self, sid: str) -> None:
        self._by_sid.pop(sid, None)

    def bound_to(self, room_code: str) -> list[str]:
        return [b.sid for b in self._by_sid.values() if b.room_code == room_code]

    def __len__(self) -> int:
        return len(self._by_sid)
