"""
Auth Routes

Login, logout, identity check, and self-service password change.
"""

from flask import Blueprint, jsonify

from errors import AuthenticationError, NotFoundError
from models import db, User
from routes.helpers import bcrypt_rounds, json_body
from services.audit import record_event
from services.auth import current_auth, login_user, logout_user, password_change_exempt, public
from services.passwords import check_password, hash_password, validate_password
from services.settings_store import get_settings_store
from utils.sanitizer import sanitize_line

bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@bp.route('/login', methods=['POST'])
@public
def login():
    data = json_body()
    username = sanitize_line(data.get('username'), 80)
    password = data.get('password') or ''

    user = User.query.filter_by(username=username).first() if username else None
    if user is None or not check_password(password, user.password_hash):
        # Same answer for unknown user and wrong password
        record_event('login_failed', {'username': username})
        raise AuthenticationError("Invalid credentials")

    login_user(user)
    record_event('login', {'username': user.username}, user=user)
    return jsonify(user.to_dict())


@bp.route('/logout', methods=['POST'])
@password_change_exempt
def logout():
    record_event('logout')
    logout_user()
    return jsonify({'success': True})


@bp.route('/me')
@password_change_exempt
def me():
    user = db.session.get(User, current_auth().user_id)
    if user is None:
        raise NotFoundError("User not found")
    return jsonify(user.to_dict())


@bp.route('/change-password', methods=['POST'])
@password_change_exempt
def change_password():
    data = json_body()
    password = data.get('password')
    validate_password(password, get_settings_store().password_policy())

    user = db.session.get(User, current_auth().user_id)
    user.password_hash = hash_password(password, bcrypt_rounds())
    user.require_password_change = False
    db.session.commit()

    record_event('password_change', {'user_id': user.id})
    return jsonify({'success': True})


@bp.route('/password-requirements')
@public
def password_requirements():
    return jsonify(get_settings_store().password_requirements())
