"""API blueprints. Each sub-package exposes one Blueprint registered by create_app()."""
