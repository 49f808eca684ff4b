"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
session cookie flags and logging. It uses environment variables for sensitive information and defaults for development.
In production, make sure to set the appropriate environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'marches.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for mutating API calls (token sent as X-CSRFToken)
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = None

    # Session cookie
    SESSION_COOKIE_NAME = os.environ.get("SESSION_COOKIE_NAME", "marches_session")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE", False)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Dashboard
    UPCOMING_DEADLINE_DAYS = 7
    UPCOMING_DEADLINE_LIMIT = 5
    RECENT_ACTIVITY_LIMIT = 10

    APP_NAME = "Gestion des Marchés Publics"


class TestingConfig(Config):
    """In-memory database, CSRF off."""

    TESTING = True
    SECRET_KEY = "testing"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "WARNING"
