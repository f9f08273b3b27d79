import os
import sys
import pytest

# Ensure the backend root (containing the `leaderboard` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from leaderboard import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:3000']
    MAX_SCORE = 1_000_000
    HIGH_SCORE_THRESHOLD = 1000
    LEADERBOARD_SIZE = 10
    LEADERBOARD_MAX_LIMIT = 100
    DEFAULT_ROOM = 'leaderboard'
    SUBMISSION_BROADCAST_ROOM = ''
    LOG_LEVEL = 'DEBUG'


class RecordingSender:
    """Stand-in transport that records (connection_id, event, data)."""

    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)

    def __call__(self, connection_id, event, data):
        if connection_id in self.failing:
            raise ConnectionError(f'transport closed for {connection_id}')
        self.sent.append((connection_id, event, data))

    def kinds_for(self, connection_id):
        return [data['kind'] for cid, _, data in self.sent if cid == connection_id]

    def connections(self):
        return {cid for cid, _, _ in self.sent}


@pytest.fixture()
def sender():
    return RecordingSender()


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import leaderboard.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def live(flask_app):
    return flask_app.extensions['live_leaderboard']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def register_user(http_client, username, password='password'):
    res = http_client.post('/api/auth/register', json={'username': username, 'password': password})
    assert res.status_code == 201
    return res.get_json()['user']


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
