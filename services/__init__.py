"""
Services Package

Business logic modules for the recipe application.
"""

from .passwords import (
    PASSWORD_MIN_LENGTH_FLOOR,
    SPECIAL_CHARACTERS,
    PasswordPolicy,
    check_password,
    hash_password,
    password_error,
    validate_password,
)

from .settings_store import SettingsStore, get_settings_store

from .auth import (
    AuthContext,
    admin_required,
    authenticate_request,
    current_auth,
    ensure_owned,
    load_session_user,
    login_manager,
    login_user,
    logout_user,
    owned_query,
    revoke_sessions,
    password_change_exempt,
    public,
    settings_editor_required,
    write_access_required,
)

from .audit import record_event, list_events

from .gemini import GeminiClient, get_gemini_client
from .mealie import submit_recipe
from .export import recipe_to_markdown

__all__ = [
    # Passwords
    'PASSWORD_MIN_LENGTH_FLOOR',
    'SPECIAL_CHARACTERS',
    'PasswordPolicy',
    'check_password',
    'hash_password',
    'password_error',
    'validate_password',
    # Settings
    'SettingsStore',
    'get_settings_store',
    # Auth
    'AuthContext',
    'admin_required',
    'authenticate_request',
    'current_auth',
    'ensure_owned',
    'load_session_user',
    'login_manager',
    'login_user',
    'logout_user',
    'owned_query',
    'revoke_sessions',
    'password_change_exempt',
    'public',
    'settings_editor_required',
    'write_access_required',
    # Audit
    'record_event',
    'list_events',
    # External
    'GeminiClient',
    'get_gemini_client',
    'submit_recipe',
    'recipe_to_markdown',
]
