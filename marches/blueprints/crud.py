"""
marches/blueprints/crud.py

Shared list/detail/create/update/delete routes for the resource blueprints.

Order of checks on mutating routes (do not reorder):
1) authentication (boundary hook in create_app)
2) resource permission (decorator) - a denial never reveals whether the id exists
3) body validation (pydantic) -> 400
4) existence -> 404

AUDIT:
- CREATE/UPDATE/DELETE are recorded via marches/audit.py; the store only flushes, so the entity
  write and its audit entry are committed together (or rolled back together).
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type

from flask import Blueprint, jsonify, request
from flask_login import current_user

from ..audit import CREATE, DELETE, UPDATE, log_action, serialize_model
from ..errors import ResourceNotFound, ValidationFailed
from ..extensions import db
from ..schemas import ApiSchema
from ..security import Action, ResourceKind, resource_permission_required
from ..storage import EntityStore
from ..utils import to_api_dict


def json_body() -> Dict[str, Any]:
    """Parsed JSON object body, or 400."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed("Request body must be a JSON object")
    return data


def register_resource(
    bp: Blueprint,
    *,
    path: str,
    name: str,
    label: str,
    kind: ResourceKind,
    store: EntityStore,
    create_schema: Type[ApiSchema],
    update_schema: Type[ApiSchema],
    filters: Optional[Mapping[str, str]] = None,
    owner_field: Optional[str] = None,
) -> None:
    """
    Register the five standard routes for one resource on bp.

    filters maps a query parameter to a store method; the first one present wins.
    owner_field, when set, is stamped with the current user's id on create.
    """
    filters = dict(filters or {})

    def list_view():
        for param, method in filters.items():
            value = (request.args.get(param) or "").strip()
            if value:
                rows = getattr(store, method)(value)
                break
        else:
            rows = store.list()
        return jsonify([to_api_dict(row) for row in rows])

    def detail_view(entity_id: str):
        entity = store.get(entity_id)
        if entity is None:
            raise ResourceNotFound.for_entity(label)
        return jsonify(to_api_dict(entity))

    @resource_permission_required(kind, Action.ADD)
    def create_view():
        data = create_schema.model_validate(json_body()).model_dump()
        if owner_field:
            data[owner_field] = current_user.id

        entity = store.create(data)

        log_action(entity, CREATE, after=serialize_model(entity))
        db.session.commit()
        return jsonify(to_api_dict(entity)), 201

    @resource_permission_required(kind, Action.EDIT)
    def update_view(entity_id: str):
        data = update_schema.model_validate(json_body()).model_dump(exclude_unset=True)

        entity = store.get(entity_id)
        if entity is None:
            raise ResourceNotFound.for_entity(label)
        before = serialize_model(entity)

        entity = store.update(entity_id, data)

        log_action(entity, UPDATE, before=before, after=serialize_model(entity))
        db.session.commit()
        return jsonify(to_api_dict(entity))

    @resource_permission_required(kind, Action.DELETE)
    def delete_view(entity_id: str):
        entity = store.get(entity_id)
        if entity is None:
            raise ResourceNotFound.for_entity(label)
        log_action(entity, DELETE, before=serialize_model(entity))
        store.delete(entity_id)
        db.session.commit()
        return "", 204

    bp.add_url_rule(path, endpoint=f"list_{name}", view_func=list_view, methods=["GET"])
    bp.add_url_rule(path, endpoint=f"create_{name}", view_func=create_view, methods=["POST"])
    bp.add_url_rule(f"{path}/<entity_id>", endpoint=f"get_{name}", view_func=detail_view, methods=["GET"])
    bp.add_url_rule(f"{path}/<entity_id>", endpoint=f"update_{name}", view_func=update_view, methods=["PATCH"])
    bp.add_url_rule(f"{path}/<entity_id>", endpoint=f"delete_{name}", view_func=delete_view, methods=["DELETE"])
