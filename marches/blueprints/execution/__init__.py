from .routes import execution_bp  # noqa: F401
