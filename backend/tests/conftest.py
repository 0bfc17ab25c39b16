import os
import sys
import json
from datetime import datetime
import pytest

# Ensure the backend root (containing the `bosstrack` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from bosstrack import create_app, db, socketio
from bosstrack.clock import FixedClock
from bosstrack.services.respawn import build_services
from bosstrack.services.respawn.bosses import create_boss

NOW = datetime(2026, 10, 18, 12, 0, 0)


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DUPLICATE_TOLERANCE_MIN = 5
    SPAWN_MAX_AGE_DAYS = 30
    PREDICTION_COUNT = 3
    WINDOW_COUNT = 3
    LEDGER_MAX_RETRIES = 3
    AUTO_CREATE_UNREGISTERED = False
    RECOMPUTE_ON_LATEST_DELETE = True
    DEFAULT_LEAD_TIMES = 'minutes:5'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import bosstrack.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def clock():
    return FixedClock(NOW)


@pytest.fixture()
def services(flask_app, clock):
    return build_services(flask_app, clock=clock)


@pytest.fixture()
def make_guild(services):
    from bosstrack.models import Guild

    def _make(name='Vanguard'):
        return services.store.create(Guild, name=name)
    return _make


@pytest.fixture()
def make_user(services):
    from bosstrack.models import User

    def _make(username, guild=None, role='member', lead_times=None, favorites=None, push=True):
        return services.store.create(
            User,
            username=username,
            guild_id=guild.id if guild else None,
            role=role,
            push_notifications=push,
            notification_timing=json.dumps(lead_times) if lead_times is not None else None,
            favorite_bosses=json.dumps(favorites) if favorites is not None else None,
        )
    return _make


@pytest.fixture()
def make_boss(services):
    def _make(name='Lady Vox', respawn_interval=60, **fields):
        return create_boss(services.store, name, respawn_interval, server='Quarm', **fields)
    return _make


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, namespace='/ws')
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
