"""
Error Types and Handlers

Every failure a request can hit maps to one of these categories and is
rendered as a JSON body of the form {"error": ..., "category": ...}.
"""

import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = 'Internal server error'


class AppError(Exception):
    """Base class for errors that are reported to the caller."""
    status_code = 500
    category = 'internal'
    default_message = GENERIC_ERROR_MESSAGE

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        body = {'error': self.message, 'category': self.category}
        if self.details is not None:
            body['details'] = self.details
        return body


class AuthenticationError(AppError):
    """No valid session, or bad credentials."""
    status_code = 401
    category = 'authentication'
    default_message = 'Unauthorized'


class PasswordChangeRequiredError(AppError):
    """Session is valid but restricted until the password is changed."""
    status_code = 403
    category = 'password_change_required'
    default_message = 'Password change required'


class AuthorizationError(AppError):
    status_code = 403
    category = 'authorization'
    default_message = 'Forbidden'


class ValidationError(AppError):
    status_code = 400
    category = 'validation'
    default_message = 'Invalid request'


class ConflictError(AppError):
    status_code = 409
    category = 'conflict'
    default_message = 'Conflict'


class NotFoundError(AppError):
    status_code = 404
    category = 'not_found'
    default_message = 'Not found'


class UpstreamError(AppError):
    """An external collaborator failed; its detail is forwarded as-is."""
    status_code = 502
    category = 'upstream'
    default_message = 'Upstream service failed'


def register_error_handlers(app, db):
    """Attach JSON error handlers to the Flask app."""

    @app.errorhandler(AppError)
    def handle_app_error(error):
        if error.status_code >= 500:
            logger.warning("%s: %s", error.category, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        body = {'error': error.description or error.name, 'category': 'http'}
        return jsonify(body), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error):
        db.session.rollback()
        logger.exception("Storage error")
        return jsonify({'error': GENERIC_ERROR_MESSAGE, 'category': 'internal'}), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception("Unhandled error")
        return jsonify({'error': GENERIC_ERROR_MESSAGE, 'category': 'internal'}), 500
