from __future__ import annotations


class RoomError(Exception):
    """A rejected room event. State is untouched when this is raised."""

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message or code

    def as_payload(self) -> dict:
        return {"error": self.code, "message": self.message}
