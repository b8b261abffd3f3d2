"""
Testing configuration for the WashOps backend
"""
import os
from config.settings import Config


class TestingConfig(Config):
    """Testing configuration with isolated database and safe defaults"""

    TESTING = True
    DEBUG = False

    # Use in-memory SQLite for fast tests
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'TEST_DATABASE_URL',
        'sqlite:///:memory:'
    )

    SECRET_KEY = 'test-secret-key'
    JWT_SECRET = 'test-jwt-secret'

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False

    # Never start background jobs under pytest
    ENABLE_SCHEDULER = False

    TIMEZONE = 'UTC'

    # Logging
    LOG_LEVEL = 'WARNING'
