"""
Session Model

Server-side login sessions. The cookie only carries the opaque token; the
row decides whether the session is still valid, so deleting it revokes
the login everywhere.
"""

import secrets
from datetime import datetime

from .base import db


def new_session_token():
    return secrets.token_urlsafe(32)


class UserSession(db.Model):
    __tablename__ = 'sessions'

    id = db.Column(db.String(64), primary_key=True, default=new_session_token)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    last_seen_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    ip_address = db.Column(db.String(64), nullable=True)

    def is_expired(self, idle_lifetime, absolute_lifetime, now=None):
        """Expired when idle too long, or older than the absolute ceiling."""
        now = now or datetime.utcnow()
        return (now - self.last_seen_at > idle_lifetime
                or now - self.created_at > absolute_lifetime)
