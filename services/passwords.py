"""
Password Policy and Hashing

Complexity rules evaluated against the admin-configurable policy, plus
bcrypt hashing helpers.
"""

import re
from dataclasses import dataclass

import bcrypt

from errors import ValidationError

# The configured minimum length can never go below this
PASSWORD_MIN_LENGTH_FLOOR = 10

SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

_DIGIT_RE = re.compile(r'\d')
_SPECIAL_RE = re.compile('[' + re.escape(SPECIAL_CHARACTERS) + ']')


def _truthy(value):
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = PASSWORD_MIN_LENGTH_FLOOR
    require_number: bool = True
    require_special: bool = True

    @property
    def effective_min_length(self):
        return max(self.min_length, PASSWORD_MIN_LENGTH_FLOOR)

    @classmethod
    def from_settings(cls, settings):
        """Build a policy from raw settings values (strings as stored)."""
        try:
            min_length = int(settings.get('passwordMinLength', PASSWORD_MIN_LENGTH_FLOOR))
        except (TypeError, ValueError):
            min_length = PASSWORD_MIN_LENGTH_FLOOR
        return cls(
            min_length=min_length,
            require_number=_truthy(settings.get('passwordRequireNumber', '1')),
            require_special=_truthy(settings.get('passwordRequireSpecial', '1')),
        )

    def to_settings(self):
        return {
            'passwordMinLength': str(self.effective_min_length),
            'passwordRequireNumber': '1' if self.require_number else '0',
            'passwordRequireSpecial': '1' if self.require_special else '0',
        }


def password_error(password, policy):
    """Return the message for the first rule the password breaks, or None.

    Length is checked before the character-class rules.
    """
    if not isinstance(password, str):
        password = ''
    min_length = policy.effective_min_length
    if len(password) < min_length:
        return f"Password must be at least {min_length} characters."
    if policy.require_number and not _DIGIT_RE.search(password):
        return "Password must contain at least one number."
    if policy.require_special and not _SPECIAL_RE.search(password):
        return "Password must contain at least one special character."
    return None


def validate_password(password, policy):
    """Raise ValidationError when the password does not satisfy the policy."""
    error = password_error(password, policy)
    if error:
        raise ValidationError(error)


def hash_password(password, rounds=12):
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def check_password(password, password_hash):
    """True when the password matches; malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False
