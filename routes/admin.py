"""
Admin Routes

User management and audit log reading. Admin role only.
"""

from flask import Blueprint, jsonify, request
from sqlalchemy.exc import IntegrityError

from constants.validation import (
    DEFAULT_AUDIT_PAGE_SIZE, MAX_AUDIT_PAGE_SIZE, MAX_LENGTHS, VALID_ROLES
)
from errors import ConflictError, NotFoundError, ValidationError
from models import db, User, ROLE_ADMIN, ROLE_USER
from routes.helpers import bcrypt_rounds, json_body
from services.audit import list_events, record_event
from services.auth import admin_required, current_auth, logout_user, revoke_sessions
from services.passwords import hash_password, validate_password
from services.settings_store import get_settings_store
from utils.params import parse_bool, safe_int
from utils.sanitizer import sanitize_line

bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _clean_username(value):
    username = sanitize_line(value, MAX_LENGTHS['username'])
    if not username:
        raise ValidationError("Username is required")
    return username


def _clean_role(value):
    role = (value or ROLE_USER).strip().lower()
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role: {value}")
    return role


def _other_admin_count(user_id):
    return User.query.filter(User.role == ROLE_ADMIN, User.id != user_id).count()


def _commit_user_change():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username already exists")


# ============================================
# ROUTES - USERS
# ============================================

@bp.route('/users')
@admin_required
def list_users():
    users = User.query.order_by(User.created_at, User.username).all()
    return jsonify([user.to_dict(include_created=True) for user in users])


@bp.route('/users', methods=['POST'])
@admin_required
def create_user():
    data = json_body()
    username = _clean_username(data.get('username'))
    role = _clean_role(data.get('role'))
    password = data.get('password')
    validate_password(password, get_settings_store().password_policy())

    if User.query.filter_by(username=username).first():
        raise ConflictError("Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(password, bcrypt_rounds()),
        role=role,
        can_edit_mealie=parse_bool(data.get('can_edit_mealie')),
        require_password_change=True,
    )
    db.session.add(user)
    _commit_user_change()

    record_event('user_create', {
        'user_id': user.id, 'username': user.username, 'role': user.role,
        'can_edit_mealie': bool(user.can_edit_mealie),
    })
    return jsonify({'success': True, 'id': user.id}), 201


@bp.route('/users/<user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    data = json_body()
    changes = {}

    if 'username' in data:
        username = _clean_username(data.get('username'))
        if username != user.username:
            if User.query.filter(User.username == username, User.id != user.id).first():
                raise ConflictError("Username already exists")
            changes['username'] = username

    if 'role' in data:
        role = _clean_role(data.get('role'))
        if user.role == ROLE_ADMIN and role != ROLE_ADMIN and _other_admin_count(user.id) == 0:
            raise ConflictError("Cannot remove the last admin")
        if role != user.role:
            changes['role'] = role

    if data.get('password'):
        validate_password(data['password'], get_settings_store().password_policy())
        user.password_hash = hash_password(data['password'], bcrypt_rounds())
        changes['password'] = True
        if user.id != current_auth().user_id:
            revoke_sessions(user.id)

    if 'can_edit_mealie' in data:
        changes['can_edit_mealie'] = parse_bool(data.get('can_edit_mealie'))
    if 'require_password_change' in data:
        changes['require_password_change'] = parse_bool(data.get('require_password_change'))

    for field, value in changes.items():
        if field != 'password':
            setattr(user, field, value)
    _commit_user_change()

    record_event('user_update', {'user_id': user.id, 'changes': changes})
    return jsonify({'success': True})


@bp.route('/users/<user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    if user.role == ROLE_ADMIN and _other_admin_count(user.id) == 0:
        raise ConflictError("Cannot delete the last admin")

    username = user.username
    db.session.delete(user)
    db.session.commit()
    record_event('user_delete', {'user_id': user_id, 'username': username})

    if user_id == current_auth().user_id:
        logout_user()
        return jsonify({'success': True, 'loggedOut': True})
    return jsonify({'success': True})


# ============================================
# ROUTES - AUDIT LOG
# ============================================

@bp.route('/audit-logs')
@admin_required
def audit_logs():
    limit = safe_int(request.args.get('limit'), default=DEFAULT_AUDIT_PAGE_SIZE,
                     min_val=1, max_val=MAX_AUDIT_PAGE_SIZE)
    offset = safe_int(request.args.get('offset'), default=0, min_val=0)
    total, entries = list_events(
        limit=limit,
        offset=offset,
        action=request.args.get('action') or None,
        user_id=request.args.get('user_id') or None,
    )
    return jsonify({
        'total': total,
        'limit': limit,
        'offset': offset,
        'entries': [entry.to_dict() for entry in entries],
    })
