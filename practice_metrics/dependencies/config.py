"""
FastAPI dependency for application settings.
"""

from practice_metrics.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """Return the process-wide settings.

    Routes depend on this instead of calling ``get_settings`` so tests can
    hand them a modified copy through ``app.dependency_overrides``.
    """
    return get_settings()


__all__ = ["get_app_settings"]
