import pytest

from app import create_app
from config import TestConfig
from models import db


@pytest.fixture
def app():
    app = create_app(TestConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


def register(client, email='ana@example.com', name='Ana', password='secret-pass'):
    resp = client.post('/api/auth/register', json={'email': email, 'name': name, 'password': password})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


@pytest.fixture
def auth_client(client):
    """Client with a registered, logged-in user."""
    register(client)
    return client


@pytest.fixture
def make_task(auth_client):
    def _make(**fields):
        fields.setdefault('title', 'Some task')
        resp = auth_client.post('/api/tasks', json=fields)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()
    return _make
