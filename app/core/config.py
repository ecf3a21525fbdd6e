# app/core/config.py

import os # Environment variables are the single source of configuration.
from datetime import timedelta


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, default))


class Config:
    """Base settings shared by every environment."""
    # Signs and verifies every access/refresh token.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=14)

    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')
    FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET')

    # 'firestore' keeps conversations in the document store,
    # 'sql' uses the hosted Postgres database at MESSAGE_DATABASE_URL.
    MESSAGE_BACKEND = os.getenv('MESSAGE_BACKEND', 'firestore')
    MESSAGE_DATABASE_URL = os.getenv('MESSAGE_DATABASE_URL')

    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')

    # Upload limits. Flask rejects bodies above MAX_CONTENT_LENGTH with 413.
    MAX_CONTENT_LENGTH = _int_env('MAX_CONTENT_LENGTH', 60 * 1024 * 1024)
    MAX_IMAGE_BYTES = _int_env('MAX_IMAGE_BYTES', 5 * 1024 * 1024)
    STORY_MAX_VIDEO_BYTES = _int_env('STORY_MAX_VIDEO_BYTES', 50 * 1024 * 1024)
    STORY_TTL_HOURS = _int_env('STORY_TTL_HOURS', 24)

    # Retry policy for media uploads to the storage bucket.
    UPLOAD_MAX_ATTEMPTS = _int_env('UPLOAD_MAX_ATTEMPTS', 3)
    UPLOAD_RETRY_WAIT = float(os.getenv('UPLOAD_RETRY_WAIT', 1.0))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Local development: debug mode with auto-reload."""
    DEBUG = True


class TestingConfig(Config):
    """Test runs. Services are injected, so no Firebase credentials are needed."""
    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'testing-secret-key-with-enough-length-for-hs256')
    MESSAGE_BACKEND = 'firestore'
    UPLOAD_RETRY_WAIT = 0


class ProductionConfig(Config):
    """Deployed environment."""
    DEBUG = False


# Maps FLASK_ENV to the settings class; used by create_app in app/__init__.py.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
