from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'mongodb'
    - MONGODB_URL: connection string. Default 'mongodb://localhost:27017'
    - MONGODB_DATABASE: database name. Default 'todos'
    - MONGODB_COLLECTION: collection holding todo documents. Default 'todo'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - STATIC_DIR: directory with the browser frontend. Default 'public'
    - LOG_LEVEL: root log level. Default 'INFO'
    - LOG_FORMAT: 'text' (default) or 'json'
    - HOST / PORT: bind address for `python -m todo_api`
    """

    persistence_backend: str
    mongodb_url: str
    mongodb_database: str
    mongodb_collection: str
    cors_allow_origins: List[str]
    static_dir: str
    log_level: str
    log_format: str
    host: str
    port: int


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "mongodb"}:
        # Fallback to memory if unsupported
        backend = "memory"

    log_format = _get_env("LOG_FORMAT", "text").strip().lower()
    if log_format not in {"text", "json"}:
        log_format = "text"

    return Settings(
        persistence_backend=backend,
        mongodb_url=_get_env("MONGODB_URL", "mongodb://localhost:27017").strip(),
        mongodb_database=_get_env("MONGODB_DATABASE", "todos").strip(),
        mongodb_collection=_get_env("MONGODB_COLLECTION", "todo").strip(),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        static_dir=_get_env("STATIC_DIR", "public").strip(),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
        log_format=log_format,
        host=_get_env("HOST", "127.0.0.1").strip(),
        port=_parse_int(_get_env("PORT", "8000"), 8000),
    )
