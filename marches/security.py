"""
marches/security.py

Role-based access control for the procurement administration API.

Key rules:
- UI is never trusted; every mutating route is gated server-side.
- The role -> permission table is static, immutable configuration built once at import.
- Three role overrides are evaluated BEFORE the table:
  1) ordonnateur is read-only (no add/edit/delete on anything);
  2) technical_service may only touch execution resources
     (service orders, amendments, invoices);
  3) marches_manager may not add invoices.
- The policy only answers True/False. Routes translate False into 403.

The active AccessPolicy lives in app.extensions["access_policy"] (installed by create_app),
so tests can substitute an alternate table.
"""

from __future__ import annotations

import enum
from functools import wraps
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

from flask import current_app
from flask_login import current_user

from .errors import AuthenticationRequired, PermissionDenied


class Role(str, enum.Enum):
    ADMIN = "admin"
    MARCHES_MANAGER = "marches_manager"
    ORDONNATEUR = "ordonnateur"
    TECHNICAL_SERVICE = "technical_service"


class ResourceKind(str, enum.Enum):
    TENDER = "tender"
    SUPPLIER = "supplier"
    BID = "bid"
    CONTRACT = "contract"
    SERVICE_ORDER = "service_order"
    AMENDMENT = "amendment"
    INVOICE = "invoice"


class Action(str, enum.Enum):
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"


class Permission(str, enum.Enum):
    VIEW_ADMIN = "view_admin"
    MANAGE_USERS = "manage_users"
    MANAGE_SETTINGS = "manage_settings"

    ADD_TENDER = "add_tender"
    ADD_SUPPLIER = "add_supplier"
    ADD_BID = "add_bid"
    ADD_CONTRACT = "add_contract"
    ADD_SERVICE_ORDER = "add_service_order"
    ADD_AMENDMENT = "add_amendment"
    ADD_INVOICE = "add_invoice"

    EDIT_TENDER = "edit_tender"
    EDIT_SUPPLIER = "edit_supplier"
    EDIT_BID = "edit_bid"
    EDIT_CONTRACT = "edit_contract"
    EDIT_SERVICE_ORDER = "edit_service_order"
    EDIT_AMENDMENT = "edit_amendment"
    EDIT_INVOICE = "edit_invoice"

    DELETE_TENDER = "delete_tender"
    DELETE_SUPPLIER = "delete_supplier"
    DELETE_BID = "delete_bid"
    DELETE_CONTRACT = "delete_contract"
    DELETE_SERVICE_ORDER = "delete_service_order"
    DELETE_AMENDMENT = "delete_amendment"
    DELETE_INVOICE = "delete_invoice"

    @classmethod
    def for_resource(cls, action: Action, kind: ResourceKind) -> "Permission":
        return cls(f"{Action(action).value}_{ResourceKind(kind).value}")


EXECUTION_RESOURCES: FrozenSet[ResourceKind] = frozenset(
    {ResourceKind.SERVICE_ORDER, ResourceKind.AMENDMENT, ResourceKind.INVOICE}
)


def _grants(action: Action, *kinds: ResourceKind) -> FrozenSet[Permission]:
    return frozenset(Permission.for_resource(action, kind) for kind in kinds)


ROLE_PERMISSIONS: Mapping[Role, FrozenSet[Permission]] = MappingProxyType(
    {
        Role.ADMIN: frozenset(Permission),
        Role.MARCHES_MANAGER: (
            _grants(
                Action.ADD,
                ResourceKind.TENDER,
                ResourceKind.SUPPLIER,
                ResourceKind.BID,
                ResourceKind.CONTRACT,
                ResourceKind.SERVICE_ORDER,
                ResourceKind.AMENDMENT,
            )
            | _grants(Action.EDIT, *ResourceKind)
            | _grants(Action.DELETE, ResourceKind.TENDER, ResourceKind.SUPPLIER, ResourceKind.BID)
        ),
        Role.TECHNICAL_SERVICE: (
            _grants(Action.ADD, *EXECUTION_RESOURCES)
            | _grants(Action.EDIT, *EXECUTION_RESOURCES)
        ),
        Role.ORDONNATEUR: frozenset(),
    }
)


def _role_of(user: Any) -> Optional[Role]:
    """Return the user's Role, or None for null/anonymous users and unknown roles."""
    if user is None or not getattr(user, "is_authenticated", True):
        return None
    try:
        return Role(getattr(user, "role", None))
    except ValueError:
        return None


class AccessPolicy:
    """Pure (role, resource kind, action) -> bool decisions."""

    def __init__(self, role_permissions: Mapping[Role, FrozenSet[Permission]] = ROLE_PERMISSIONS):
        self._table: Mapping[Role, FrozenSet[Permission]] = MappingProxyType(
            {Role(role): frozenset(perms) for role, perms in role_permissions.items()}
        )

    def has_permission(self, user: Any, permission: Permission) -> bool:
        role = _role_of(user)
        if role is None:
            return False
        return Permission(permission) in self._table.get(role, frozenset())

    def can(self, user: Any, action: Action, kind: ResourceKind) -> bool:
        action = Action(action)
        kind = ResourceKind(kind)

        role = _role_of(user)
        if role is None:
            return False

        if role is Role.ORDONNATEUR:
            return False

        if role is Role.TECHNICAL_SERVICE and kind not in EXECUTION_RESOURCES:
            return False

        if role is Role.MARCHES_MANAGER and kind is ResourceKind.INVOICE and action is Action.ADD:
            return False

        return self.has_permission(user, Permission.for_resource(action, kind))

    def can_add(self, user: Any, kind: ResourceKind) -> bool:
        return self.can(user, Action.ADD, kind)

    def can_edit(self, user: Any, kind: ResourceKind) -> bool:
        return self.can(user, Action.EDIT, kind)

    def can_delete(self, user: Any, kind: ResourceKind) -> bool:
        return self.can(user, Action.DELETE, kind)

    def can_access_admin(self, user: Any) -> bool:
        return self.has_permission(user, Permission.VIEW_ADMIN)

    def matrix(self, user: Any) -> Dict[str, Any]:
        """Evaluated affordances for one user (used by the client to hide buttons)."""
        return {
            "canAccessAdmin": self.can_access_admin(user),
            "resources": {
                kind.value: {action.value: self.can(user, action, kind) for action in Action}
                for kind in ResourceKind
            },
        }


default_policy = AccessPolicy()


def current_policy() -> AccessPolicy:
    """The policy installed on the running app (falls back to the default table)."""
    return current_app.extensions.get("access_policy", default_policy)


def is_admin() -> bool:
    """Return True if current user is authenticated and admin."""
    return _role_of(current_user) is Role.ADMIN


# ---------------------------------------------------------------------
# Route decorators
# ---------------------------------------------------------------------
def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: administrator role only (every verb)."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            raise AuthenticationRequired()
        if not is_admin():
            raise PermissionDenied()
        return view_func(*args, **kwargs)

    return wrapper


def resource_permission_required(kind: ResourceKind, action: Action) -> Callable[..., Any]:
    """
    Decorator factory: gate a mutating route by (kind, action).

    Runs before the view, so a denial never reveals whether the target exists.

    Usage:
        @resource_permission_required(ResourceKind.TENDER, Action.ADD)
        def create_tender(): ...
    """
    kind = ResourceKind(kind)
    action = Action(action)

    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not current_user.is_authenticated:
                raise AuthenticationRequired()
            if not current_policy().can(current_user, action, kind):
                raise PermissionDenied()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator
