"""Application factory that wires configuration, storage and the HTTP API."""
from __future__ import annotations

import os
from typing import Optional

from fastapi import FastAPI

from .api import create_app
from .config import ServiceConfig, load_config, resolve_config_path
from .database import Database


def create_application(
    *,
    config: Optional[ServiceConfig] = None,
    config_path: Optional[str] = None,
) -> FastAPI:
    """Create the ASGI application from a config object or the resolved config file."""

    if config is None:
        config = load_config(resolve_config_path(config_path or os.getenv("USERS_SERVICE_CONFIG")))

    database = Database(config.database_path)
    return create_app(
        database=database,
        initialize_database=True,
        trusted_proxies=config.trusted_proxies,
    )


__all__ = ["create_application"]
