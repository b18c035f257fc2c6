"""
Testing configuration
"""
from baggs.config.settings import Config


class TestingConfig(Config):
    """Testing configuration with an in-memory SQLite database"""
    TESTING = True
    DEBUG = False

    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'

    SECRET_KEY = 'test-secret-key'
    JWT_SECRET = 'test-jwt-secret'
    BCRYPT_LOG_ROUNDS = 4

    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'

    SOCKETIO_ASYNC_MODE = 'threading'

    LOG_LEVEL = 'WARNING'
    SENTRY_DSN = None
