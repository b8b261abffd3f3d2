"""
Configuration settings for different environments
"""
import os
import secrets
import logging

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


def _database_url(default):
    url = os.environ.get("DATABASE_URL", "")
    if not url:
        return default
    # SQLAlchemy 2.x rejects postgres://; pin the psycopg 3 driver
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            url = url.replace(scheme, "postgresql+psycopg://", 1)
            break
    return url


class Config:
    """Base configuration"""
    SECRET_KEY = _require_in_production('SECRET_KEY', 'dev-only-' + secrets.token_hex(16))

    # JWT Authentication
    JWT_SECRET = _require_in_production('JWT_SECRET', 'dev-only-' + secrets.token_hex(32))
    JWT_EXPIRES_DAYS = int(os.environ.get('JWT_EXPIRES_DAYS', '30'))

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///washops.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CORS
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')

    # Business wall clock used for driver days and duty windows
    TIMEZONE = os.environ.get('TIMEZONE', 'Asia/Dubai')

    # Rate limiting
    RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', 'true').lower() == 'true'

    # Background jobs
    ENABLE_SCHEDULER = os.environ.get('ENABLE_SCHEDULER', '').lower() == 'true'

    # Error monitoring
    SENTRY_DSN = os.environ.get('SENTRY_DSN', '')

    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 20,
        'max_overflow': 40,
        'pool_recycle': 3600,
        'pool_pre_ping': True,
    }


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
