"""
Configuration classes for the Natours application.
Supports Development, Testing, and Production environments.
"""
import os
from dataclasses import dataclass
from datetime import timedelta


class Config:
    """Base configuration with default settings."""

    # Security - SECRET_KEY is validated in production config
    _secret_key = os.environ.get('SECRET_KEY')
    if not _secret_key:
        import warnings
        warnings.warn(
            "SECRET_KEY not set in environment. Using insecure default key. "
            "Set SECRET_KEY environment variable for production!",
            UserWarning
        )
        _secret_key = 'dev-secret-key-change-in-production'
    SECRET_KEY = _secret_key
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600  # 1 hour

    # Session
    SESSION_COOKIE_SECURE = os.environ.get('FLASK_ENV') == 'production'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Database
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = (
        {}
        if os.environ.get('DATABASE_URL', '').startswith('sqlite')
        else {
            'pool_pre_ping': True,
            'pool_recycle': 300,
        }
    )

    # Rate Limiting
    RATELIMIT_STORAGE_URI = 'memory://'
    RATELIMIT_DEFAULT = os.environ.get('RATE_LIMIT_GLOBAL', '100/hour')
    RATELIMIT_HEADERS_ENABLED = True

    # Mail
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'localhost')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS', 'true').lower() == 'true'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'Natours <hello@natours.io>')

    # Caching
    CACHE_TYPE = 'SimpleCache'
    CACHE_DEFAULT_TIMEOUT = 300

    # Request body and uploads
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16 MB
    UPLOAD_FOLDER = os.environ.get(
        'UPLOAD_FOLDER',
        os.path.join(os.path.dirname(os.path.abspath(__file__)), 'static', 'img'),
    )

    # JWT (separate key for API tokens, falls back to SECRET_KEY if not set)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY')
    JWT_EXPIRES_IN_DAYS = int(os.environ.get('JWT_EXPIRES_IN_DAYS', 90))
    JWT_COOKIE_EXPIRES_IN_DAYS = int(os.environ.get('JWT_COOKIE_EXPIRES_IN_DAYS', 90))

    # Stripe (tour checkout)
    STRIPE_SECRET_KEY = os.environ.get('STRIPE_SECRET_KEY')
    STRIPE_PUBLISHABLE_KEY = os.environ.get('STRIPE_PUBLISHABLE_KEY')
    STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET')
    STRIPE_CURRENCY = os.environ.get('STRIPE_CURRENCY', 'usd')
    APP_URL = os.environ.get('APP_URL', 'http://localhost:5000')

    # Error responses carry exception class and stack when enabled
    SHOW_ERROR_DETAILS = False

    # Sentry (error monitoring, production only)
    SENTRY_DSN = os.environ.get('SENTRY_DSN')


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    TEMPLATES_AUTO_RELOAD = True
    SHOW_ERROR_DETAILS = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///natours-dev.db'
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Testing configuration."""

    TESTING = True
    DEBUG = False
    WTF_CSRF_ENABLED = False  # Disable CSRF for testing

    # Use SQLite in-memory for tests (portable, no external DB required)
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or \
        'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False

    # Keep outgoing mail in memory
    MAIL_BACKEND = 'locmem'

    JWT_SECRET_KEY = 'test-jwt-secret'

    # Stripe test values
    STRIPE_SECRET_KEY = 'sk_test_fake_key_for_testing'
    STRIPE_PUBLISHABLE_KEY = 'pk_test_fake_key_for_testing'
    STRIPE_WEBHOOK_SECRET = 'whsec_test_fake_secret'
    APP_URL = 'http://localhost'

    CACHE_TYPE = 'NullCache'

    SERVER_NAME = 'localhost'
    PREFERRED_URL_SCHEME = 'http'


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False

    # SECRET_KEY and DATABASE_URL - validated in init_app (not at import time)
    SECRET_KEY = os.environ.get('SECRET_KEY')
    # Fix postgres:// → postgresql:// (SQLAlchemy 2.x requires postgresql://)
    _db_url = os.environ.get('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    SESSION_COOKIE_SECURE = True

    # Redis for rate limiting and caching (multi-worker consistency)
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL', 'memory://')
    _redis_url = os.environ.get('REDIS_URL')
    CACHE_TYPE = 'RedisCache' if _redis_url else 'SimpleCache'
    CACHE_REDIS_URL = _redis_url
    CACHE_DEFAULT_TIMEOUT = 600

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': 10,
        'max_overflow': 20,
    }

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization with validation."""
        import logging
        logger = logging.getLogger(__name__)

        if not cls.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable is required in production")
        if not cls.SQLALCHEMY_DATABASE_URI:
            raise ValueError("DATABASE_URL environment variable is required in production")

        stripe_keys = ['STRIPE_SECRET_KEY', 'STRIPE_PUBLISHABLE_KEY', 'STRIPE_WEBHOOK_SECRET']
        set_keys = [k for k in stripe_keys if os.environ.get(k)]
        missing_keys = [k for k in stripe_keys if not os.environ.get(k)]
        if set_keys and missing_keys:
            raise ValueError(
                f"Stripe partially configured. Missing: {', '.join(missing_keys)}. "
                "Set all 3 Stripe keys or none."
            )

        if not os.environ.get('REDIS_URL'):
            logger.warning(
                "REDIS_URL not set: cache and rate limiter use in-memory storage. "
                "Set REDIS_URL for production multi-worker consistency."
            )

        if not os.environ.get('JWT_SECRET_KEY'):
            logger.warning(
                "JWT_SECRET_KEY not set, JWT tokens signed with SECRET_KEY. "
                "Set JWT_SECRET_KEY for key separation."
            )


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


@dataclass(frozen=True)
class Settings:
    """Values the auth, booking and upload code needs, resolved once per app."""

    jwt_secret: str
    jwt_expires_in: timedelta
    jwt_cookie_expires_in: timedelta
    stripe_secret_key: str | None
    stripe_webhook_secret: str | None
    stripe_currency: str
    app_url: str
    upload_folder: str
    show_error_details: bool

    @classmethod
    def from_mapping(cls, cfg):
        return cls(
            jwt_secret=cfg.get('JWT_SECRET_KEY') or cfg['SECRET_KEY'],
            jwt_expires_in=timedelta(days=cfg.get('JWT_EXPIRES_IN_DAYS', 90)),
            jwt_cookie_expires_in=timedelta(days=cfg.get('JWT_COOKIE_EXPIRES_IN_DAYS', 90)),
            stripe_secret_key=cfg.get('STRIPE_SECRET_KEY'),
            stripe_webhook_secret=cfg.get('STRIPE_WEBHOOK_SECRET'),
            stripe_currency=cfg.get('STRIPE_CURRENCY', 'usd'),
            app_url=cfg.get('APP_URL', 'http://localhost:5000'),
            upload_folder=cfg['UPLOAD_FOLDER'],
            show_error_details=bool(cfg.get('SHOW_ERROR_DETAILS', False)),
        )


def get_settings():
    """Return the Settings bound to the current application."""
    from flask import current_app
    return current_app.extensions['natours_settings']
