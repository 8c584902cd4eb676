"""Read-only status surface for the running relay."""

from .web import StatusPanel, build_status, build_status_server, create_status_app

__all__ = ["StatusPanel", "build_status", "build_status_server", "create_status_app"]
