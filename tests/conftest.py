import os
import sys
import pytest

# Ensure the project root (containing `config` and the `wordchain` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from wordchain import create_app, db, socketio
from wordchain.services.games.channel import LocalChannel
from wordchain.services.games.replica import ClientReplica, settle_unattended
from wordchain.services.games.scheduler import TimeoutKeeper, TimeoutScheduler
from wordchain.services.games.state import Rules
from wordchain.services.games.store import MemorySnapshotStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    TURN_TIMEOUT_SEC = 60
    WORD_MAX_AGE_SEC = 5
    MIN_PLAYERS = 2
    ALLOW_RESET_TO_LOBBY = True
    ENFORCE_STARTING_LETTER = False
    ANONYMOUS_USERNAME = 'anon'
    BCRYPT_LOG_ROUNDS = 4


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import wordchain.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


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


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ScriptedRng:
    """Stands in for random.Random: each choice() returns the next scripted value."""

    def __init__(self, *values):
        self.values = list(values)

    def choice(self, seq):
        value = self.values.pop(0)
        assert value in seq
        return value


class Table:
    """In-process store, channel and timers shared by a set of replicas."""

    def __init__(self, session_id='GAME', rules=None):
        self.session_id = session_id
        self.clock = FakeClock()
        self.rules = rules or Rules()
        self.store = MemorySnapshotStore()
        self.channel = LocalChannel()
        self.scheduler = TimeoutScheduler(self.channel, clock=self.clock)
        self.keeper = TimeoutKeeper(self.store, self.scheduler, turn_timeout=self.rules.turn_timeout, clock=self.clock)
        self.scheduler.on_fired = self.settle_unattended

    def replica(self, user_id, rng=None, attach=True):
        replica = ClientReplica(
            self.session_id,
            user_id,
            store=self.store,
            channel=self.channel,
            keeper=self.keeper,
            rules=self.rules,
            clock=self.clock,
            rng=rng,
        )
        if attach:
            replica.attach()
        return replica

    def settle_unattended(self, session_id, event):
        return settle_unattended(session_id, event, self.store, self.channel,
                                 lambda sid, user: self.replica(user, attach=False))

    def fire_timeout(self):
        [job_id] = self.scheduler.pending(self.session_id)
        assert self.scheduler.fire(job_id)
        return job_id


@pytest.fixture()
def table():
    return Table()
