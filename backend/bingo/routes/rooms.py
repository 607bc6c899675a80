from __future__ import annotations

from flask import Blueprint, jsonify

from ..game import service

bp = Blueprint("rooms", __name__)


@bp.get("/rooms/<code>")
def get_room(code: str):
    registry = service.current_registry()
    with registry.lock:
        room = registry.get(code)
        if not room:
            return jsonify({"error": "room_not_found"}), 404
        return jsonify(service.room_public_state(room))
