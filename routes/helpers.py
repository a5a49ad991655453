"""Shared request helpers for the API blueprints."""

from flask import current_app, request

from errors import ValidationError


def json_body():
    """The request's JSON object ({} when absent). Non-object bodies are rejected."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def bcrypt_rounds():
    return current_app.config.get('BCRYPT_ROUNDS', 12)
