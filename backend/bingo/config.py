import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    # Socket.IO
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "").strip()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Rooms
    ROOM_CAPACITY = int(os.environ.get("ROOM_CAPACITY", "2"))
    ROOM_CODE_LENGTH = int(os.environ.get("ROOM_CODE_LENGTH", "4"))

    # Game
    MIN_NUMBER = int(os.environ.get("MIN_NUMBER", "1"))
    MAX_NUMBER = int(os.environ.get("MAX_NUMBER", "25"))
    # "random" or "first"
    FIRST_TURN_POLICY = os.environ.get("FIRST_TURN_POLICY", "random").strip().lower()

    # Chat / names
    USERNAME_MAX_LENGTH = int(os.environ.get("USERNAME_MAX_LENGTH", "16"))
    MESSAGE_MAX_LENGTH = int(os.environ.get("MESSAGE_MAX_LENGTH", "500"))
    CHAT_HISTORY_LIMIT = int(os.environ.get("CHAT_HISTORY_LIMIT", "200"))
