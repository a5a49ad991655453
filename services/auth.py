"""
Authentication and Authorization

Every request outside the public endpoints goes through the same checks,
in this order:

1. session check       -> AuthenticationError
2. pending password    -> PasswordChangeRequiredError (except exempt views)
3. role / ownership    -> AuthorizationError / NotFoundError (per view)
4. password complexity -> ValidationError (password-setting views only)

Steps 1 and 2 run in a before_request hook and produce an AuthContext on
flask.g; views use the decorators and ensure_owned() for step 3.

Logins are rows in the sessions table; Flask-Login keeps only the row's
token in the signed cookie, so logout and user deletion revoke them.
"""

from dataclasses import dataclass
from datetime import datetime
from functools import wraps

import flask_login
from flask import current_app, g, request, session
from flask_login import LoginManager, current_user

from errors import AuthenticationError, AuthorizationError, NotFoundError, PasswordChangeRequiredError
from models import db, UserSession, ROLE_ADMIN, ROLE_READONLY
from models.session import new_session_token


@dataclass(frozen=True)
class AuthContext:
    """Identity and flags of the caller, loaded once per request."""
    user_id: str
    username: str
    role: str
    can_edit_settings: bool
    require_password_change: bool

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def is_readonly(self):
        return self.role == ROLE_READONLY

    @classmethod
    def from_user(cls, user):
        return cls(
            user_id=user.id,
            username=user.username,
            role=user.role,
            can_edit_settings=bool(user.can_edit_mealie),
            require_password_change=bool(user.require_password_change),
        )


# ============================================
# VIEW MARKERS
# ============================================

def public(view):
    """Mark a view as reachable without a session."""
    view.is_public = True
    return view


def password_change_exempt(view):
    """Mark a view as allowed while the user must change their password."""
    view.password_change_exempt = True
    return view


# ============================================
# SESSION
# ============================================

login_manager = LoginManager()


def _lifetimes():
    config = current_app.config
    return config['PERMANENT_SESSION_LIFETIME'], config['SESSION_ABSOLUTE_LIFETIME']


@login_manager.user_loader
def load_session_user(token):
    """Resolve the cookie's session token to its user.

    Expired rows are deleted; a live row has its idle timer reset.
    """
    record = db.session.get(UserSession, token)
    if record is None:
        return None

    now = datetime.utcnow()
    idle, absolute = _lifetimes()
    if record.is_expired(idle, absolute, now):
        db.session.delete(record)
        db.session.commit()
        return None

    record.last_seen_at = now
    db.session.commit()
    user = record.user
    user.session_token = record.id
    return user


def _purge_expired_sessions():
    now = datetime.utcnow()
    idle, absolute = _lifetimes()
    UserSession.query.filter(db.or_(
        UserSession.last_seen_at < now - idle,
        UserSession.created_at < now - absolute,
    )).delete(synchronize_session=False)


def login_user(user):
    """Open a server-side session for the user and bind the cookie to it."""
    session.clear()
    session.permanent = True

    _purge_expired_sessions()
    record = UserSession(id=new_session_token(), user_id=user.id,
                         ip_address=request.remote_addr)
    db.session.add(record)
    db.session.commit()

    user.session_token = record.id
    flask_login.login_user(user)


def logout_user():
    """Revoke the current server-side session and clear the cookie."""
    token = current_user.get_id() if current_user.is_authenticated else None
    if token:
        UserSession.query.filter_by(id=token).delete(synchronize_session=False)
        db.session.commit()
    flask_login.logout_user()
    session.clear()
    g.auth = None


def revoke_sessions(user_id):
    """Drop every session of a user (e.g. after an admin resets their password)."""
    UserSession.query.filter_by(user_id=user_id).delete(synchronize_session=False)


def load_auth_context():
    """AuthContext for the current session, or None if there is no valid one."""
    if not current_user.is_authenticated:
        return None
    return AuthContext.from_user(current_user)


def authenticate_request():
    """before_request hook: session check, then the forced-password-change gate."""
    g.auth = None
    view = current_app.view_functions.get(request.endpoint)
    if view is None or getattr(view, 'is_public', False):
        return None

    context = load_auth_context()
    if context is None:
        session.clear()
        raise AuthenticationError()
    g.auth = context

    if context.require_password_change and not getattr(view, 'password_change_exempt', False):
        raise PasswordChangeRequiredError()
    return None


def current_auth():
    context = g.get('auth')
    if context is None:
        raise AuthenticationError()
    return context


# ============================================
# ROLE / OWNERSHIP
# ============================================

def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not current_auth().is_admin:
            raise AuthorizationError()
        return view(*args, **kwargs)
    return wrapper


def write_access_required(view):
    """Reject the read-only role from create/update/delete views."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_auth().is_readonly:
            raise AuthorizationError("Read-only access")
        return view(*args, **kwargs)
    return wrapper


def settings_editor_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        context = current_auth()
        if not (context.is_admin or context.can_edit_settings):
            raise AuthorizationError("Permission denied to edit settings")
        return view(*args, **kwargs)
    return wrapper


def ensure_owned(resource, message='Not found'):
    """
    Return the resource if the caller may act on it.

    Missing resources and resources owned by someone else look the same
    to non-admins, so ownership is not leaked. Admins bypass ownership.
    """
    context = current_auth()
    if resource is None:
        raise NotFoundError(message)
    if not context.is_admin and resource.user_id != context.user_id:
        raise NotFoundError(message)
    return resource


def owned_query(model):
    """Query scoped to the caller's rows (all rows for admins)."""
    context = current_auth()
    query = model.query
    if not context.is_admin:
        query = query.filter(model.user_id == context.user_id)
    return query
