"""
Settings Store

The single access point for the key/value settings table. Password policy
and integration credentials are read through this object instead of being
queried ad hoc at each call site.
"""

import logging

from flask import current_app

from errors import ValidationError
from models import Setting
from services.passwords import PASSWORD_MIN_LENGTH_FLOOR, PasswordPolicy
from utils.params import parse_bool
from utils.sanitizer import sanitize_url

logger = logging.getLogger(__name__)

MEALIE_URL = 'mealieUrl'
MEALIE_TOKEN = 'mealieToken'
PASSWORD_MIN_LENGTH = 'passwordMinLength'
PASSWORD_REQUIRE_SPECIAL = 'passwordRequireSpecial'
PASSWORD_REQUIRE_NUMBER = 'passwordRequireNumber'

PASSWORD_KEYS = (PASSWORD_MIN_LENGTH, PASSWORD_REQUIRE_SPECIAL, PASSWORD_REQUIRE_NUMBER)
WRITABLE_KEYS = (MEALIE_URL, MEALIE_TOKEN) + PASSWORD_KEYS


class SettingsStore:
    """Reads and writes application settings through one SQLAlchemy session."""

    def __init__(self, db):
        self.db = db

    def all(self):
        return {row.key: row.value for row in Setting.query.all()}

    def get(self, key, default=None):
        row = self.db.session.get(Setting, key)
        if row is None or row.value is None:
            return default
        return row.value

    def password_policy(self):
        return PasswordPolicy.from_settings(self.all())

    def password_requirements(self):
        """Policy values as stored, for the public requirements endpoint."""
        settings = self.all()
        return {key: settings[key] for key in PASSWORD_KEYS if key in settings}

    def integration(self):
        """External recipe-manager (url, token); either may be empty."""
        return self.get(MEALIE_URL, ''), self.get(MEALIE_TOKEN, '')

    def _normalize(self, changes):
        values = {}

        if PASSWORD_MIN_LENGTH in changes:
            try:
                min_length = int(changes[PASSWORD_MIN_LENGTH])
            except (TypeError, ValueError):
                raise ValidationError("Minimum password length must be a whole number")
            if min_length < PASSWORD_MIN_LENGTH_FLOOR:
                raise ValidationError(
                    f"Minimum password length cannot be less than {PASSWORD_MIN_LENGTH_FLOOR}"
                )
            values[PASSWORD_MIN_LENGTH] = str(min_length)

        for key in (PASSWORD_REQUIRE_SPECIAL, PASSWORD_REQUIRE_NUMBER):
            if key in changes:
                values[key] = '1' if parse_bool(changes[key]) else '0'

        if MEALIE_URL in changes:
            raw_url = (changes[MEALIE_URL] or '').strip()
            url = sanitize_url(raw_url)
            if raw_url and not url:
                raise ValidationError("Mealie URL must be an http(s) address")
            values[MEALIE_URL] = url.rstrip('/')

        if MEALIE_TOKEN in changes:
            values[MEALIE_TOKEN] = (changes[MEALIE_TOKEN] or '').strip()

        return values

    def update(self, changes):
        """
        Validate and store a partial settings update in one transaction.

        Nothing is written if any value is rejected.

        Returns:
            list: keys whose stored value changed
        """
        values = self._normalize({k: v for k, v in changes.items() if k in WRITABLE_KEYS})
        current = self.all()
        changed = [key for key, value in values.items() if current.get(key) != value]

        for key in changed:
            self.db.session.merge(Setting(key=key, value=values[key]))
        self.db.session.commit()

        if changed:
            logger.info("Settings updated: %s", ', '.join(sorted(changed)))
        return changed


def get_settings_store():
    """The store registered on the current app."""
    return current_app.extensions['settings_store']
