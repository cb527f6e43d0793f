import os
import sys
import pytest

# Ensure the backend root (containing the `whitered` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from whitered import create_app, socketio
from whitered.services.game import RoomService
from whitered.services.registry import RoomRegistry
from whitered.services.sessions import SessionManager


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    FRONTEND_ORIGINS = ['http://localhost:8080']
    PORT = 5000
    RECONNECT_WINDOW_SEC = 0.2
    ROOM_TTL_EMPTY_SEC = 3600
    ROOM_SWEEP_INTERVAL_SEC = 60
    RATE_LIMIT_WINDOW_SEC = 60
    RATE_LIMIT_MAX = 1000
    CHAT_MAX_LENGTH = 500


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FirstChoice:
    """Deterministic stand-in for random.Random: always picks the first option."""

    def choice(self, seq):
        return seq[0]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def registry(clock):
    return RoomRegistry(clock=clock)


@pytest.fixture()
def sessions(registry):
    return SessionManager(registry)


@pytest.fixture()
def rooms(registry, sessions):
    return RoomService(registry, sessions, rng=FirstChoice())


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def _connect(flask_app):
    return socketio.test_client(flask_app, flask_test_client=flask_app.test_client())


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def factory():
        c = _connect(flask_app)
        clients.append(c)
        return c

    yield factory
    for c in clients:
        try:
            if c.is_connected():
                c.disconnect()
        except Exception:
            pass
