"""
marches/seed.py

Seed the default login account for every role.

Rules:
- Safe to run multiple times (idempotent): accounts are matched by email.
- Existing accounts keep their password; username, full name and role are refreshed.
- Every account starts with DEFAULT_PASSWORD; change it after the first login.
"""

from __future__ import annotations

import logging
from typing import Tuple

from . import storage
from .extensions import db
from .security import Role

logger = logging.getLogger(__name__)


DEFAULT_PASSWORD = "ChangeMe123!"

DEFAULT_USERS = [
    # username, email, full_name, role
    ("admin", "admin@example.com", "Administrateur", Role.ADMIN),
    ("marches_manager", "marches.manager@example.com", "Gestionnaire des Marchés", Role.MARCHES_MANAGER),
    ("ordonnateur", "ordonnateur@example.com", "Ordonnateur", Role.ORDONNATEUR),
    ("technical_service", "technical.service@example.com", "Service Technique", Role.TECHNICAL_SERVICE),
]


def seed_default_users() -> Tuple[int, int]:
    """Upsert DEFAULT_USERS. Returns (created, updated)."""
    created = updated = 0

    for username, email, full_name, role in DEFAULT_USERS:
        user = storage.users.get_by_email(email)
        if user is None:
            storage.users.create(
                {
                    "username": username,
                    "email": email,
                    "full_name": full_name,
                    "role": role.value,
                    "password": DEFAULT_PASSWORD,
                }
            )
            created += 1
            continue

        user.username = username
        user.full_name = full_name
        user.role = role.value
        updated += 1

    db.session.commit()
    logger.info("Default users seeded: %d created, %d updated", created, updated)
    return created, updated
