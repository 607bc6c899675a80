import os
import sys

import pytest

# Ensure the backend root (containing the `bingo` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from bingo.server import create_app


class TestConfig:
    TESTING = True
    SECRET_KEY = 'test-secret'
    CORS_ORIGINS = '*'
    TRUST_PROXY_HEADERS = False
    SOCKETIO_ASYNC_MODE = 'threading'
    ROOM_CAPACITY = 2
    ROOM_CODE_LENGTH = 4
    MIN_NUMBER = 1
    MAX_NUMBER = 25
    # Deterministic turn order in tests: the first seat moves first.
    FIRST_TURN_POLICY = 'first'
    USERNAME_MAX_LENGTH = 16
    MESSAGE_MAX_LENGTH = 500
    CHAT_HISTORY_LIMIT = 200


@pytest.fixture()
def app_and_socketio():
    return create_app(TestConfig)


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def socketio(app_and_socketio):
    return app_and_socketio[1]


@pytest.fixture()
def registry(flask_app):
    return flask_app.extensions['bingo.registry']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_sio_client(flask_app, socketio):
    clients = []

    def _make():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(test_client)
        return test_client

    yield _make

    for c in clients:
        try:
            if c.is_connected():
                c.disconnect()
        except Exception:
            pass


def events_named(received, name):
    """Payloads of every received packet called `name`."""
    return [pkt['args'][0] if pkt['args'] else None for pkt in received if pkt['name'] == name]
