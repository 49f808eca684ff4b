"""
Notification routes.

- GET    /api/notifications/<user_id>   newest first
- POST   /api/notifications             201
- PATCH  /api/notifications/<id>/read   204, 404 if unknown
- DELETE /api/notifications/<id>        204, 404 if unknown
"""

from flask import Blueprint, jsonify

from ... import storage
from ...errors import ResourceNotFound
from ...extensions import db
from ...schemas import NotificationCreate
from ...utils import to_api_dict
from ..crud import json_body

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.route("/<user_id>", methods=["GET"])
def list_notifications(user_id: str):
    return jsonify([to_api_dict(n) for n in storage.notifications.list_for_user(user_id)])


@notifications_bp.route("", methods=["POST"])
def create_notification():
    data = NotificationCreate.model_validate(json_body()).model_dump()
    notification = storage.notifications.create(data)
    db.session.commit()
    return jsonify(to_api_dict(notification)), 201


@notifications_bp.route("/<notification_id>/read", methods=["PATCH"])
def mark_read(notification_id: str):
    if not storage.notifications.mark_read(notification_id):
        raise ResourceNotFound.for_entity("Notification")
    db.session.commit()
    return "", 204


@notifications_bp.route("/<notification_id>", methods=["DELETE"])
def delete_notification(notification_id: str):
    if not storage.notifications.delete(notification_id):
        raise ResourceNotFound.for_entity("Notification")
    db.session.commit()
    return "", 204
