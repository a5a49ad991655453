import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db, User
from services.passwords import hash_password

ADMIN_PASSWORD = 'Admin@12345'
USER_PASSWORD = 'UserPass123!'


@pytest.fixture()
def db_path(tmp_path):
    return tmp_path / 'recipes.db'


@pytest.fixture()
def app(db_path):
    app = create_app('testing', {'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}'})
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    """Create a user directly in the database and return its id."""
    def _make_user(username, password=USER_PASSWORD, role='user',
                   can_edit_mealie=False, require_password_change=False):
        with app.app_context():
            user = User(
                username=username,
                password_hash=hash_password(password, rounds=4),
                role=role,
                can_edit_mealie=can_edit_mealie,
                require_password_change=require_password_change,
            )
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make_user


@pytest.fixture()
def client_for(app):
    """Return a new test client logged in as the given user."""
    def _client_for(username, password=USER_PASSWORD):
        client = app.test_client()
        response = client.post('/api/auth/login', json={'username': username, 'password': password})
        assert response.status_code == 200, response.get_json()
        return client
    return _client_for


@pytest.fixture()
def admin_id(app):
    """Id of the bootstrap admin, with its forced password change cleared."""
    with app.app_context():
        admin = User.query.filter_by(username='admin').one()
        admin.require_password_change = False
        db.session.commit()
        return admin.id


@pytest.fixture()
def admin_client(admin_id, client_for):
    return client_for('admin', ADMIN_PASSWORD)


@pytest.fixture()
def alice_client(make_user, client_for):
    make_user('alice')
    return client_for('alice')


@pytest.fixture()
def bob_client(make_user, client_for):
    make_user('bob')
    return client_for('bob')
