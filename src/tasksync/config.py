# src/tasksync/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Plain names used by hosted deployments (PORT, SUPABASE_URL, ...) are accepted
  as fallbacks for the prefixed ones.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKSYNC"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- HTTP connector ----
    http_enabled: bool
    http_host: str
    http_port: int
    cors_origin: str

    # ---- Console connector ----
    console_enabled: bool
    console_token: str | None

    # ---- Identity provider ----
    auth_provider: str  # "supabase" | "static"
    supabase_url: str
    supabase_service_role_key: str | None
    auth_timeout_seconds: float
    static_tokens: list[str] = field(default_factory=list)

    # ---- Change bus ----
    bus_queue_size: int = 64

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "tasksync") or "tasksync"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasksync"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")

        http_enabled = _env_bool(_k("HTTP_ENABLED"), True)
        http_host = _env(_k("HTTP_HOST"), "127.0.0.1")
        http_port = _env_int(_k("HTTP_PORT"), _env_int("PORT", 4000))
        cors_origin = _env(_k("CORS_ORIGIN"), "*")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), False)
        console_token = _first_env(_k("CONSOLE_TOKEN"), default=None)

        supabase_url = (_first_env(_k("SUPABASE_URL"), "SUPABASE_URL", default="") or "").strip()
        supabase_key = _first_env(
            _k("SUPABASE_SERVICE_ROLE_KEY"), "SUPABASE_SERVICE_ROLE_KEY", default=None
        )

        # Default to the hosted provider only when it is configured.
        default_provider = "supabase" if supabase_url else "static"
        auth_provider = _env(_k("AUTH_PROVIDER"), default_provider).strip().lower() or default_provider

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            http_enabled=http_enabled,
            http_host=http_host,
            http_port=http_port,
            cors_origin=cors_origin,
            console_enabled=console_enabled,
            console_token=console_token,
            auth_provider=auth_provider,
            supabase_url=supabase_url,
            supabase_service_role_key=supabase_key,
            auth_timeout_seconds=_env_float(_k("AUTH_TIMEOUT_SECONDS"), 5.0),
            static_tokens=_env_list(_k("STATIC_TOKENS"), []),
            bus_queue_size=_env_int(_k("BUS_QUEUE_SIZE"), 64),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
