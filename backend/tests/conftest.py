import os
import sys
import random
import pytest

# Ensure the backend root (containing the `app` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from app import create_app, db, socketio
from config import store_engine_options
from app.services.lobbies.catalog import LocationCatalog
from app.services.lobbies.manager import LobbyManager
from app.services.lobbies.repository import InMemoryLobbyRepository


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = store_engine_options('sqlite://', 5)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOBBY_REPOSITORY = 'sql'
    WRITE_RETRY_BACKOFF_MS = 0


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


TEST_LOCATIONS = {
    'basic': [
        {'location': 'Kitchen', 'roles': ['Chef', 'Waiter']},
    ],
    'extra': [
        {'location': 'Library', 'roles': ['Librarian', 'Student', 'Author']},
        {'location': 'Harbor', 'roles': ['Sailor', 'Captain', 'Fisherman', 'Loader']},
    ],
    'empty': [],
}


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import app.models  # noqa: F401
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
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def catalog():
    return LocationCatalog(TEST_LOCATIONS, default_sets=('basic',))


@pytest.fixture()
def memory_repo(fake_clock):
    return InMemoryLobbyRepository(clock=fake_clock)


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def manager(memory_repo, catalog, sleeps):
    return LobbyManager(
        memory_repo,
        catalog,
        ttl_seconds=3600,
        rng=random.Random(1234),
        sleep=sleeps.append,
    )
