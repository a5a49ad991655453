"""
Tests for login, sessions and the forced password change gate.
"""

from datetime import datetime, timedelta

from models import db, User, UserSession
from conftest import ADMIN_PASSWORD, USER_PASSWORD


def test_unauthenticated_requests_get_401(client):
    response = client.get('/api/recipes')

    assert response.status_code == 401
    assert response.get_json()['category'] == 'authentication'


def test_public_endpoints_need_no_session(client):
    assert client.get('/api/health').status_code == 200

    response = client.get('/api/auth/password-requirements')
    assert response.status_code == 200
    assert response.get_json() == {
        'passwordMinLength': '10',
        'passwordRequireSpecial': '1',
        'passwordRequireNumber': '1',
    }


def test_login_returns_profile(client, make_user):
    make_user('alice')

    response = client.post('/api/auth/login', json={'username': 'alice', 'password': USER_PASSWORD})

    assert response.status_code == 200
    body = response.get_json()
    assert body['username'] == 'alice'
    assert body['role'] == 'user'
    assert 'password' not in body and 'password_hash' not in body
    assert client.get('/api/auth/me').get_json()['username'] == 'alice'


def test_bad_credentials_look_the_same(client, make_user):
    """Unknown user and wrong password give identical answers."""
    make_user('alice')

    wrong_password = client.post('/api/auth/login', json={'username': 'alice', 'password': 'nope'})
    unknown_user = client.post('/api/auth/login', json={'username': 'nobody', 'password': 'nope'})

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.get_json() == unknown_user.get_json()
    assert wrong_password.get_json()['error'] == 'Invalid credentials'


def test_logout_ends_session(alice_client):
    assert alice_client.post('/api/auth/logout').status_code == 200
    assert alice_client.get('/api/auth/me').status_code == 401


def _age_sessions(app, username, **offsets):
    """Push the user's session rows back in time."""
    with app.app_context():
        user = User.query.filter_by(username=username).one()
        for record in UserSession.query.filter_by(user_id=user.id):
            for field, delta in offsets.items():
                setattr(record, field, getattr(record, field) - delta)
        db.session.commit()


def test_session_has_absolute_ceiling(app, alice_client):
    """Activity keeps a session alive, but never past 24h after login."""
    _age_sessions(app, 'alice', created_at=timedelta(hours=25))

    response = alice_client.get('/api/recipes')

    assert response.status_code == 401
    assert alice_client.get('/api/auth/me').status_code == 401
    with app.app_context():
        assert UserSession.query.count() == 0


def test_idle_session_expires(app, alice_client):
    _age_sessions(app, 'alice', last_seen_at=timedelta(hours=25))

    assert alice_client.get('/api/recipes').status_code == 401


def test_activity_refreshes_last_seen(app, alice_client):
    _age_sessions(app, 'alice', last_seen_at=timedelta(hours=23))

    assert alice_client.get('/api/recipes').status_code == 200
    with app.app_context():
        record = UserSession.query.one()
        assert datetime.utcnow() - record.last_seen_at < timedelta(minutes=5)


def test_replayed_cookie_is_rejected_after_logout(app, alice_client):
    """A cookie captured before logout no longer authenticates anyone."""
    captured = alice_client.get_cookie('recipe_session').value
    assert alice_client.post('/api/auth/logout').status_code == 200

    replay = app.test_client()
    replay.set_cookie('recipe_session', captured)

    assert replay.get('/api/recipes').status_code == 401
    assert replay.get('/api/auth/me').status_code == 401


def test_logout_only_ends_that_session(app, make_user, client_for):
    make_user('alice')
    laptop = client_for('alice')
    phone = client_for('alice')

    laptop.post('/api/auth/logout')

    assert laptop.get('/api/recipes').status_code == 401
    assert phone.get('/api/recipes').status_code == 200


def test_self_delete_revokes_session(app, make_user, client_for):
    make_user('second-admin', role='admin')
    admin = client_for('second-admin')
    captured = admin.get_cookie('recipe_session').value
    with app.app_context():
        user_id = User.query.filter_by(username='second-admin').one().id

    response = admin.delete(f'/api/admin/users/{user_id}')
    assert response.status_code == 200
    assert response.get_json()['loggedOut'] is True

    replay = app.test_client()
    replay.set_cookie('recipe_session', captured)
    assert replay.get('/api/recipes').status_code == 401
    with app.app_context():
        assert UserSession.query.filter_by(user_id=user_id).count() == 0


def test_admin_password_reset_revokes_other_sessions(app, admin_client, alice_client):
    with app.app_context():
        alice_id = User.query.filter_by(username='alice').one().id

    response = admin_client.put(f'/api/admin/users/{alice_id}', json={'password': 'NewPass456!x'})

    assert response.status_code == 200
    assert alice_client.get('/api/recipes').status_code == 401
    assert admin_client.get('/api/recipes').status_code == 200


def test_deleted_user_session_is_rejected(app, alice_client):
    with app.app_context():
        db.session.delete(User.query.filter_by(username='alice').one())
        db.session.commit()

    assert alice_client.get('/api/recipes').status_code == 401


def test_bootstrap_admin_must_change_password(client):
    """The seeded admin can log in but is held at the password change gate."""
    login = client.post('/api/auth/login', json={'username': 'admin', 'password': ADMIN_PASSWORD})
    assert login.status_code == 200
    assert login.get_json()['require_password_change'] == 1

    blocked = client.get('/api/recipes')
    assert blocked.status_code == 403
    assert blocked.get_json()['category'] == 'password_change_required'

    # Exempt views stay reachable
    assert client.get('/api/auth/me').status_code == 200

    weak = client.post('/api/auth/change-password', json={'password': 'short1!'})
    assert weak.status_code == 400
    assert weak.get_json()['error'] == 'Password must be at least 10 characters.'

    changed = client.post('/api/auth/change-password', json={'password': 'BrandNew123!'})
    assert changed.status_code == 200
    assert client.get('/api/recipes').status_code == 200
    assert client.get('/api/auth/me').get_json()['require_password_change'] == 0


def test_password_gate_applies_before_role_checks(make_user, client_for):
    """A read-only user with a pending change sees the gate, not a role error."""
    make_user('reader', role='readonly', require_password_change=True)
    client = client_for('reader')

    response = client.post('/api/recipes', json={'name': 'Soup'})

    assert response.status_code == 403
    assert response.get_json()['category'] == 'password_change_required'


def test_flag_set_by_admin_applies_to_live_session(admin_client, alice_client, app):
    with app.app_context():
        alice_id = User.query.filter_by(username='alice').one().id

    assert alice_client.get('/api/recipes').status_code == 200
    response = admin_client.put(f'/api/admin/users/{alice_id}', json={'require_password_change': True})
    assert response.status_code == 200

    assert alice_client.get('/api/recipes').status_code == 403


def test_changed_password_is_used_for_next_login(client, make_user):
    make_user('alice', require_password_change=True)
    client.post('/api/auth/login', json={'username': 'alice', 'password': USER_PASSWORD})
    client.post('/api/auth/change-password', json={'password': 'Different99!'})
    client.post('/api/auth/logout')

    old = client.post('/api/auth/login', json={'username': 'alice', 'password': USER_PASSWORD})
    new = client.post('/api/auth/login', json={'username': 'alice', 'password': 'Different99!'})

    assert old.status_code == 401
    assert new.status_code == 200
