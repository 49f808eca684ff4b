"""
marches/errors.py

API error taxonomy and the JSON error handlers registered by create_app().

- ValidationFailed        400  malformed/missing input, constraint violations, CSRF failures
- AuthenticationRequired  401  no valid session
- InvalidCredentials      401  wrong email/password (same answer for both)
- PermissionDenied        403  policy said no (checked before existence)
- ResourceNotFound        404  target id does not exist
- any other database error -> rollback, logged, 500 with a generic body
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .extensions import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(ApiError):
    status_code = 400
    message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(details=[{"field": field, "message": message}])


class AuthenticationRequired(ApiError):
    status_code = 401
    message = "Unauthorized"


class InvalidCredentials(AuthenticationRequired):
    message = "Invalid credentials"


class PermissionDenied(ApiError):
    status_code = 403
    message = "Forbidden: Insufficient permissions"


class ResourceNotFound(ApiError):
    status_code = 404
    message = "Not found"

    @classmethod
    def for_entity(cls, label: str) -> "ResourceNotFound":
        return cls(f"{label} not found")


def _pydantic_details(exc: ValidationError) -> List[Dict[str, Any]]:
    details = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        details.append({"field": field or "body", "message": err.get("msg", "Invalid value")})
    return details


def register_error_handlers(app: Flask) -> None:
    """Convert every failure to a JSON body with the matching status code."""

    @app.errorhandler(ApiError)
    def _api_error(exc: ApiError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(ValidationError)
    def _validation_error(exc: ValidationError):
        return jsonify(ValidationFailed(details=_pydantic_details(exc)).to_dict()), 400

    @app.errorhandler(CSRFError)
    def _csrf_error(exc: CSRFError):
        return jsonify({"error": exc.description}), 400

    @app.errorhandler(IntegrityError)
    def _integrity_error(exc: IntegrityError):
        db.session.rollback()
        logger.warning("Integrity error: %s", exc.orig)
        return jsonify({"error": "Conflicts with existing records (duplicate or invalid reference)"}), 400

    @app.errorhandler(SQLAlchemyError)
    def _database_error(exc: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error")
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code
