import os
import random
import sys
import pytest

# Ensure the backend root (containing the `klassespill` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from klassespill import create_app, socketio
from klassespill.rooms import RoomRegistry, registry as shared_registry
from klassespill.services.games.bots import BotEngine
from klassespill.services.games.scheduler import ActionScheduler


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CLIENT_ORIGIN = 'http://localhost:5173'
    ROOM_MAX_AGE_SEC = 3600
    ROOM_CLEANUP_INTERVAL_SEC = 1800
    HOST_DISCONNECT_GRACE_SEC = 60
    DEMO_DEFAULT_BOTS = 5
    DEMO_MAX_BOTS = 10


class ManualScheduler(ActionScheduler):
    """Scheduler whose clock only moves when a test calls ``advance``."""

    def __init__(self):
        super().__init__()
        self.now = 0.0
        self.due = {}
        self.started = []

    def _start(self, token):
        self.due[token] = self.now + token.delay
        self.started.append(token)

    def advance(self, seconds=60.0):
        """Fire every action due within ``seconds``, in due order."""
        target = self.now + seconds
        fired = 0
        while True:
            ready = sorted(
                (at, idx, token) for idx, (token, at) in enumerate(self.due.items()) if at <= target
            )
            if not ready:
                self.now = target
                return fired
            at, _, token = ready[0]
            del self.due[token]
            # actions chained from this one are due relative to when it fired
            self.now = max(self.now, at)
            if not token.cancelled:
                self._run(token)
                fired += 1


@pytest.fixture()
def flask_app():
    shared_registry.clear()
    application = create_app(TestConfig)
    with application.app_context():
        yield application
    shared_registry.clear()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def registry():
    return RoomRegistry()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def bot_engine(registry, scheduler):
    delivered = []
    engine = BotEngine(
        registry,
        scheduler,
        deliver=lambda code, actor, effect: delivered.append((code, actor, effect)),
        rng=random.Random(7),
    )
    engine.delivered = delivered
    return engine
