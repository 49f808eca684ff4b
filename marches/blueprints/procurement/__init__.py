from .routes import procurement_bp  # noqa: F401
