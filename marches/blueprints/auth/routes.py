"""
Authentication routes (JSON).

Provides:
- GET  /api/auth/csrf         token for the X-CSRFToken header
- POST /api/auth/login        email + password -> user (no password field)
- POST /api/auth/logout       always 204
- GET  /api/auth/me           current user or 401
- GET  /api/auth/permissions  evaluated permission matrix for the current user

/api/auth is the only /api prefix reachable without a session.
"""

from flask import Blueprint, jsonify
from flask_wtf.csrf import generate_csrf

from ... import gateway
from ...errors import AuthenticationRequired
from ...schemas import LoginRequest
from ...security import current_policy
from ...utils import to_api_dict
from ..crud import json_body


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/csrf", methods=["GET"])
def csrf_token():
    return jsonify({"csrfToken": generate_csrf()})


@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate a user.

    Unknown email and wrong password both answer 401 "Invalid credentials".
    """
    credentials = LoginRequest.model_validate(json_body())
    user = gateway.login(credentials.email, credentials.password)
    return jsonify(to_api_dict(user))


@auth_bp.route("/logout", methods=["POST"])
def logout():
    gateway.logout()
    return "", 204


@auth_bp.route("/me", methods=["GET"])
def me():
    user = gateway.current_session_user()
    if user is None:
        raise AuthenticationRequired()
    return jsonify(to_api_dict(user))


@auth_bp.route("/permissions", methods=["GET"])
def permissions():
    user = gateway.current_session_user()
    if user is None:
        raise AuthenticationRequired()
    return jsonify(current_policy().matrix(user))
