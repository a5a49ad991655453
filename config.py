"""
Application Configuration

Centralizes all Flask and application configuration settings.
"""

import os
from datetime import timedelta

from dotenv import load_dotenv

# Base directory of the application
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

load_dotenv(os.path.join(BASE_DIR, '.env'))


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Base configuration class."""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-only-change-in-production')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    TRUST_PROXY = os.environ.get('TRUST_PROXY', '1') == '1'

    # SQLAlchemy settings
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///recipes.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Uploads arrive as base64 page images, so allow generous bodies
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024

    # The cookie carries a sessions-table token; the row expires after the
    # rolling idle lifetime or the absolute ceiling from login, whichever comes first
    SESSION_COOKIE_NAME = 'recipe_session'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False
    SESSION_REFRESH_EACH_REQUEST = True
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_ABSOLUTE_LIFETIME = timedelta(hours=24)

    # Bootstrap admin created by the schema reconciler
    DEFAULT_ADMIN_USERNAME = os.environ.get('DEFAULT_ADMIN_USERNAME', 'admin')
    DEFAULT_ADMIN_PASSWORD = os.environ.get('DEFAULT_ADMIN_PASSWORD', 'Admin@12345')
    # Defaults shipped by earlier releases, reset on startup when still in use
    LEGACY_ADMIN_PASSWORDS = ('admin123', 'admin')
    BCRYPT_ROUNDS = _env_int('BCRYPT_ROUNDS', 12)

    # Vision/LLM service
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY', '')
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL', 'gemini-2.5-flash')
    # Optional endpoint override (e.g. a proxy); empty uses the SDK default
    GEMINI_BASE_URL = os.environ.get('GEMINI_BASE_URL', '')

    # Timeout (seconds) for every outbound call
    EXTERNAL_REQUEST_TIMEOUT = _env_int('EXTERNAL_REQUEST_TIMEOUT', 60)


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SECRET_KEY = 'testing-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    BCRYPT_ROUNDS = 4
    GEMINI_API_KEY = 'test-key'
    EXTERNAL_REQUEST_TIMEOUT = 5
    TRUST_PROXY = False


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(env=None):
    """Get configuration based on environment."""
    if env is None:
        env = os.environ.get('FLASK_ENV', 'development')
    return config.get(env, config['default'])
