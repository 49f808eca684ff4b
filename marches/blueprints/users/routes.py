"""
marches/blueprints/users/routes.py

User management routes (administrator only, every verb).

Responses never carry the password hash (User.__api_exclude__).
Passwords are accepted on create/update and stored hashed.
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from ... import storage
from ...audit import CREATE, DELETE, UPDATE, log_action, serialize_model
from ...errors import ResourceNotFound, ValidationFailed
from ...extensions import db
from ...schemas import UserCreate, UserUpdate
from ...security import admin_required
from ...utils import to_api_dict
from ..crud import json_body

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _ensure_unique(email: str | None = None, username: str | None = None, *, exclude_id: str | None = None) -> None:
    if email:
        other = storage.users.get_by_email(email)
        if other is not None and other.id != exclude_id:
            raise ValidationFailed.for_field("email", "Email already in use")
    if username:
        other = storage.users.get_by_username(username)
        if other is not None and other.id != exclude_id:
            raise ValidationFailed.for_field("username", "Username already in use")


@users_bp.route("", methods=["GET"])
@admin_required
def list_users():
    return jsonify([to_api_dict(u) for u in storage.users.list()])


@users_bp.route("/<user_id>", methods=["GET"])
@admin_required
def get_user(user_id: str):
    user = storage.users.get(user_id)
    if user is None:
        raise ResourceNotFound.for_entity("User")
    return jsonify(to_api_dict(user))


@users_bp.route("", methods=["POST"])
@admin_required
def create_user():
    data = UserCreate.model_validate(json_body()).model_dump()
    _ensure_unique(data["email"], data["username"])

    user = storage.users.create(data)

    log_action(user, CREATE, after=serialize_model(user))
    db.session.commit()
    return jsonify(to_api_dict(user)), 201


@users_bp.route("/<user_id>", methods=["PATCH"])
@admin_required
def update_user(user_id: str):
    data = UserUpdate.model_validate(json_body()).model_dump(exclude_unset=True)
    # explicit nulls mean "unchanged" for required columns
    data = {key: value for key, value in data.items() if value is not None}

    user = storage.users.get(user_id)
    if user is None:
        raise ResourceNotFound.for_entity("User")
    _ensure_unique(data.get("email"), data.get("username"), exclude_id=user_id)
    before = serialize_model(user)

    user = storage.users.update(user_id, data)

    log_action(user, UPDATE, before=before, after=serialize_model(user))
    db.session.commit()
    return jsonify(to_api_dict(user))


@users_bp.route("/<user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id: str):
    user = storage.users.get(user_id)
    if user is None:
        raise ResourceNotFound.for_entity("User")

    log_action(user, DELETE, before=serialize_model(user))
    storage.users.delete(user_id)
    db.session.commit()
    return "", 204
