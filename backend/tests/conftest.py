import os
import sys
from types import SimpleNamespace

import pytest

# Ensure the backend root (containing the `wordchain` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from wordchain import create_app, db, socketio
from wordchain.feed import feed


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    DEFAULT_TIMER_DURATION_SEC = 15
    DISPUTE_WINDOW_SEC = 5
    GAME_CODE_LENGTH = 6


class FixedRandom:
    """Random source that always picks the first candidate."""

    def choice(self, seq):
        return seq[0]


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
    feed.clear()


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
def fixed_random():
    return FixedRandom()


@pytest.fixture()
def trio(flask_app):
    """Lobby with Alice, Bob and Cara seated in join order 1, 2, 3."""
    from wordchain.services.lobby import create_lobby, join_lobby
    lobby, _ = create_lobby('Alice', timer_duration=15, player_id='alice')
    join_lobby(lobby.game_code, 'Bob', player_id='bob')
    join_lobby(lobby.game_code, 'Cara', player_id='cara')
    return SimpleNamespace(id=lobby.id, code=lobby.game_code, timer=15)
