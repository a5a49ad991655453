"""
Routes Package

JSON API blueprints, registered by the app factory.
"""

from .auth import bp as auth_bp
from .admin import bp as admin_bp
from .settings import bp as settings_bp
from .recipes import bp as recipes_bp
from .collections import bp as collections_bp
from .mealplan import bp as mealplan_bp
from .integrations import bp as integrations_bp
from .public import bp as public_bp

BLUEPRINTS = (
    auth_bp,
    admin_bp,
    settings_bp,
    recipes_bp,
    collections_bp,
    mealplan_bp,
    integrations_bp,
    public_bp,
)


def register_blueprints(app):
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
