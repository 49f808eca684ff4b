"""
marches/audit.py

Audit logging helpers.

Goals:
- Capture WHO did WHAT to WHICH entity, with BEFORE/AFTER snapshots.
- Store username snapshot to preserve identity even if the user is deleted later.
- Store IP address for traceability.
- Feed the dashboard's recent activity list.

IMPORTANT:
- log_action() ADDS an AuditLog entry to the current SQLAlchemy session.
  The calling route controls the commit.
- Snapshots never contain password hashes (models declare __api_exclude__).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog
from .utils import json_value

CREATE = "CREATE"
UPDATE = "UPDATE"
DELETE = "DELETE"


def serialize_model(instance: Any) -> Dict[str, Any]:
    """
    Convert a SQLAlchemy model instance to a dict snapshot based on table columns.

    NOTES:
    - Captures only scalar column values (not relationships).
    - Decimal/datetime values become strings for JSON storage.
    """
    skip = set(getattr(instance, "__api_exclude__", ()))
    return {
        column.key: json_value(getattr(instance, column.key))
        for column in instance.__table__.columns
        if column.key not in skip
    }


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    Parameters:
        entity: model instance with .id (after flush/commit; a deleted instance keeps its id)
        action: CREATE / UPDATE / DELETE
        before/after: snapshots from serialize_model()

    SECURITY NOTE:
    - request.remote_addr is as Flask sees it. Behind a reverse proxy, configure ProxyFix.
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    authenticated = has_request_context() and current_user.is_authenticated

    entry = AuditLog(
        user_id=current_user.id if authenticated else None,
        username_snapshot=current_user.username if authenticated else None,
        entity_type=entity.__class__.__name__,
        entity_id=str(entity_id),
        action=action,
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry


def recent_activity(limit: int = 10) -> List[Dict[str, Any]]:
    """Latest audit entries, newest first, in API shape."""
    entries = (
        AuditLog.query
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": entry.id,
            "action": entry.action,
            "entityType": entry.entity_type,
            "entityId": entry.entity_id,
            "username": entry.username_snapshot,
            "createdAt": json_value(entry.created_at),
        }
        for entry in entries
    ]
