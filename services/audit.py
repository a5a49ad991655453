"""
Audit Trail

Append-only record of state-changing operations. Writing an entry never
fails the operation it describes.
"""

import logging

from flask import g, has_request_context, request
from sqlalchemy.exc import SQLAlchemyError

from models import db, AuditLog

logger = logging.getLogger(__name__)


def record_event(action, details=None, user=None):
    """
    Append an audit entry after the primary change has been committed.

    Args:
        action: Fixed action tag (e.g. 'recipe_create')
        details: JSON-serializable payload describing the change
        user: Actor (User or AuthContext); defaults to the request's caller,
              None for anonymous actions
    """
    if user is None and has_request_context():
        user = g.get('auth')

    entry = AuditLog(
        user_id=getattr(user, 'user_id', None) or getattr(user, 'id', None),
        username=getattr(user, 'username', None),
        action=action,
        details=details,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to write audit entry for %s", action)


def list_events(limit=100, offset=0, action=None, user_id=None):
    query = AuditLog.query
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    total = query.count()
    entries = query.order_by(AuditLog.id.desc()).offset(offset).limit(limit).all()
    return total, entries
