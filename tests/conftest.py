"""
Pytest configuration and shared fixtures for the campus laundry tests.
"""
import io

import pytest
from PIL import Image

from campus_laundry import create_app
from campus_laundry.models import db, User


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'PROGRESS_SCHEDULER_PAUSED': True,
        'LOG_LEVEL': 'WARNING',
    })
    yield app
    app.extensions['progress_watcher'].shutdown()
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Pushed application context for tests that call the service modules directly."""
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


def add_user(email, password='secret123', full_name='Test Student', is_admin=False):
    """Create a user in the current application context and return it."""
    u = User(email=email, full_name=full_name, student_id='S0001', contact_info=email, is_admin=is_admin)
    u.set_password(password)
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def customer(ctx):
    return add_user('alice@campus.local', full_name='Alice Student')


@pytest.fixture
def staff(ctx):
    return add_user('admin@campus.local', full_name='Admin Demo', is_admin=True)


def png_bytes(size=(8, 8), color='blue'):
    buf = io.BytesIO()
    Image.new('RGB', size, color).save(buf, format='PNG')
    return buf.getvalue()


def login(client, email, password='secret123'):
    return client.post('/login', data={'email': email, 'password': password})
