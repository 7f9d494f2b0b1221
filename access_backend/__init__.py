"""Access backend package initialization.

Models are loaded on-demand when `load_all_models()` is called, which happens
automatically when the FastAPI app is created via `register_app()`.
"""

__version__ = '0.4.0'

_models_loaded = False


def load_all_models():
    """Load all database models so their tables are registered on the metadata.

    It's idempotent - calling multiple times has no effect after the first call.
    """
    global _models_loaded
    if _models_loaded:
        return

    import access_backend.app.account.model  # noqa: F401

    _models_loaded = True


def are_models_loaded() -> bool:
    """Check if database models have been loaded."""
    return _models_loaded
