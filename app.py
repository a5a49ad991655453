"""
Recipe Digitizer

Flask application factory. The database is reconciled to the current
schema before the app object is handed back, so nothing is served from a
schema that failed to migrate.
"""

import logging
import os

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from config import get_config
from errors import register_error_handlers
from migrations import reconcile_database
from models import db
from routes import register_blueprints
from services.auth import authenticate_request, login_manager
from services.settings_store import SettingsStore


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(level)


def create_app(config_name=None, overrides=None):
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    # Behind a reverse proxy the client address comes from X-Forwarded-For
    if app.config.get('TRUST_PROXY'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    db.init_app(app)
    login_manager.init_app(app)
    app.extensions['settings_store'] = SettingsStore(db)

    register_error_handlers(app, db)
    app.before_request(authenticate_request)
    register_blueprints(app)

    with app.app_context():
        reconcile_database(db.engine, app.config)

    return app


if __name__ == '__main__':
    app = create_app()
    # host='0.0.0.0' allows access from other devices on the network
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)), use_reloader=False)
