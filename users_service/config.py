"""Configuration management for the users service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .database import resolve_database_path

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class ServiceConfig:
    """Runtime settings for the HTTP service."""

    database_path: Path
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    trusted_proxies: List[str] = field(default_factory=lambda: ["*"])

    @staticmethod
    def from_dict(data: Dict[str, object], base_path: Path | None = None) -> "ServiceConfig":
        """Create a :class:`ServiceConfig` from raw dictionary data."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        log_level = str(data.get("log_level", "INFO")).strip().upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level '{data.get('log_level')}'")

        proxies_raw = data.get("trusted_proxies", ["*"])
        if isinstance(proxies_raw, str):
            proxies_raw = proxies_raw.split(",")
        trusted_proxies = [str(item).strip() for item in proxies_raw or [] if str(item).strip()]

        return ServiceConfig(
            database_path=database_path,
            host=str(data.get("host", "0.0.0.0")),
            port=int(data.get("port", 8080)),
            log_level=log_level,
            trusted_proxies=trusted_proxies or ["*"],
        )


def load_config(config_path: Path) -> ServiceConfig:
    """Load settings from a YAML file, falling back to defaults if it does not exist.

    ``USERS_DB_PATH`` and ``USERS_TRUSTED_PROXIES`` override the file.
    """

    raw: Dict[str, object] = {}
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping")
        service = loaded.get("service", {}) or {}
        if not isinstance(service, dict):
            raise ValueError("The 'service' key must contain a mapping")
        raw.update(service)

    db_override = os.getenv("USERS_DB_PATH")
    if db_override:
        raw["database_path"] = str(Path(db_override).expanduser().resolve(strict=False))

    proxies_override = os.getenv("USERS_TRUSTED_PROXIES")
    if proxies_override:
        raw["trusted_proxies"] = proxies_override

    return ServiceConfig.from_dict(raw, base_path=config_path.parent)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "service.yaml").resolve(strict=False)
    return candidate


__all__ = ["ServiceConfig", "load_config", "resolve_config_path"]
