"""
marches/gateway.py

Session/auth gateway.

- login(): credential check + session (re)issue through Flask-Login.
- logout(): idempotent session teardown.
- current_session_user(): resolve the caller; heals sessions that point at deleted users.
- enforce_api_authentication(): the /api boundary rule, wired via app.before_request.

Wrong credentials and missing sessions are client errors (401).
Database failures while resolving a user are NOT swallowed: they propagate to the
SQLAlchemyError handler (500, logged).
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import request, session
from flask_login import current_user, login_user, logout_user

from . import storage
from .errors import AuthenticationRequired, InvalidCredentials
from .models import User

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
AUTH_PREFIX = "/api/auth"


def login(email: str, password: str) -> User:
    """
    Authenticate by exact email match and password hash.

    Unknown email and wrong password raise the same InvalidCredentials.
    On success the previous session content is discarded before the user id is stored.
    """
    user = storage.users.get_by_email(email)

    if user is None or not user.check_password(password):
        logger.info("Failed login attempt for %r from %s", email, request.remote_addr)
        raise InvalidCredentials()

    session.clear()
    login_user(user)
    logger.info("User %s logged in", user.username)
    return user


def logout() -> None:
    """Forget the user and drop the session cookie. Safe to call when logged out."""
    if current_user.is_authenticated:
        logger.info("User %s logged out", current_user.username)
    logout_user()
    session.clear()


def current_session_user() -> Optional[User]:
    """
    Return the logged-in User, or None.

    A session that names a user id which no longer exists is cleared.
    """
    if current_user.is_authenticated:
        return current_user._get_current_object()

    if "_user_id" in session:
        logger.warning("Session references missing user %s; clearing session", session.get("_user_id"))
        session.clear()
    return None


def _is_protected(path: str) -> bool:
    if not (path == API_PREFIX or path.startswith(API_PREFIX + "/")):
        return False
    return not path.startswith(AUTH_PREFIX)


def enforce_api_authentication() -> None:
    """before_request hook: every /api path outside /api/auth needs a valid session."""
    if not _is_protected(request.path):
        return None
    if current_session_user() is None:
        raise AuthenticationRequired()
    return None
