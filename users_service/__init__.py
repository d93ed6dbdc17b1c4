"""Users CRUD service with filtered, sorted and paginated listing."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .query import ListQuery, build_list_query


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP API application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


def create_application(*args: Any, **kwargs: Any):
    """Factory function that builds the application from configuration."""

    from .application import create_application as _create_application

    return _create_application(*args, **kwargs)


__all__ = [
    "Database",
    "ListQuery",
    "build_list_query",
    "resolve_database_path",
    "create_app",
    "create_application",
]
