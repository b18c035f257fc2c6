"""
Configuration settings for different environments
"""
import logging
import os
import secrets
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _require_in_production(var_name, default):
    """Return env var value. Outside development, warn loudly if still using default."""
    value = os.environ.get(var_name, "")
    if value:
        return value
    env = os.environ.get("FLASK_ENV", "development")
    if env not in ("development", "testing") and default:
        logging.getLogger(__name__).warning(
            "%s is using an insecure default. Set it via environment variable!", var_name
        )
    return default


def _database_url():
    url = os.environ.get('DATABASE_URL') or 'sqlite:///baggs.db'
    # Heroku-style URLs still use the legacy scheme
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


def _origins(value):
    return [origin.strip() for origin in value.split(',') if origin.strip()]


class Config:
    """Base configuration"""
    SECRET_KEY = _require_in_production('SECRET_KEY', 'dev-only-' + secrets.token_hex(16))

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT
    JWT_SECRET = _require_in_production('JWT_SECRET', 'dev-only-' + secrets.token_hex(32))
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRE = int(os.environ.get('JWT_EXPIRE', 3600))
    JWT_REFRESH_EXPIRE = int(os.environ.get('JWT_REFRESH_EXPIRE', 604800))
    BCRYPT_LOG_ROUNDS = 12

    # CORS and Socket.IO origins
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:5173')
    CORS_ORIGINS = _origins(FRONTEND_URL)
    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE') or None

    API_PREFIX = '/api/v1'

    # Rate limiting (Flask-Limiter reads the RATELIMIT_* keys)
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_STRATEGY = 'moving-window'
    RATELIMIT_DEFAULT = '200 per 15 minutes'
    RATELIMIT_HEADERS_ENABLED = True
    AUTH_RATE_LIMIT = '500 per hour'

    # Pagination
    ITEMS_PER_PAGE = 10
    MAX_ITEMS_PER_PAGE = 100

    # Notifications
    NOTIFICATION_TTL = timedelta(days=30)
    STATUS_NOTIFICATION_TTL = timedelta(days=7)

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    SENTRY_DSN = os.environ.get('SENTRY_DSN')

    PORT = int(os.environ.get('PORT', 5000))


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 3600,
        'pool_pre_ping': True,
    }
