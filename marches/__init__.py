"""
marches/__init__.py

Flask application factory for the public procurement administration API.

Architecture:
- JSON API only, everything under /api.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev.
- The client is never trusted; the access policy is enforced server-side on every write.

Request pipeline:
1) enforce_api_authentication (before_request, ahead of the CSRF check): /api outside /api/auth needs a session
2) route decorators: admin_required / resource_permission_required
3) pydantic validation, store, audit
"""

from __future__ import annotations

import logging

import click
from flask import Flask

from .errors import AuthenticationRequired, register_error_handlers
from .extensions import csrf, db, login_manager, migrate
from .gateway import enforce_api_authentication
from .models import User
from .security import AccessPolicy, Role, default_policy


def create_app(config_object: str | object = "config.Config", policy: AccessPolicy | None = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("marches").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # ----------------------------------------------------------------------
    # GLOBAL SECURITY NET: authenticated sessions for /api (server-side).
    # Registered before csrf.init_app so an anonymous write is a 401, not a CSRF 400.
    # ----------------------------------------------------------------------
    app.before_request(enforce_api_authentication)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login (None for ids that no longer exist)."""
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        raise AuthenticationRequired()

    # Injected, immutable role table
    app.extensions["access_policy"] = policy or default_policy

    register_error_handlers(app)

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.dashboard import dashboard_bp
    from .blueprints.execution import execution_bp
    from .blueprints.notifications import notifications_bp
    from .blueprints.procurement import procurement_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(procurement_bp)
    app.register_blueprint(execution_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(notifications_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-users")
    def seed_users_command():
        """Create or refresh the default account for every role."""
        from .seed import seed_default_users

        created, updated = seed_default_users()
        click.echo(f"Default users seeded ({created} created, {updated} updated).")

    @app.cli.command("create-user")
    @click.option("--username", required=True)
    @click.option("--email", required=True)
    @click.option("--full-name", required=True)
    @click.option("--role", type=click.Choice([r.value for r in Role]), required=True)
    @click.password_option()
    def create_user_command(username: str, email: str, full_name: str, role: str, password: str):
        """Create a login user."""
        from . import storage

        if storage.users.get_by_email(email) or storage.users.get_by_username(username):
            raise click.ClickException("A user with this email or username already exists.")

        user = storage.users.create(
            {"username": username, "email": email, "full_name": full_name, "role": role, "password": password}
        )
        db.session.commit()
        click.echo(f"User {user.username} created ({user.role}).")

    app.logger.debug("Application created with config %s", config_object)
    return app
