# src/taskboard/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Every timing constant of the engine (debounce, cache TTL, HTTP timeouts) is tunable here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKBOARD"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


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
    data_dir: Path
    console_enabled: bool

    # ---- Remote API ----
    api_base_url: str
    api_token: str | None
    connect_timeout_seconds: float
    read_timeout_seconds: float

    # ---- Session defaults (console front-end) ----
    role: str
    user_id: str | None
    department_name: str | None

    # ---- User search ----
    search_debounce_ms: int
    search_cache_ttl_seconds: float
    search_cache_max_entries: int

    @property
    def search_debounce_seconds(self) -> float:
        return max(0, self.search_debounce_ms) / 1000.0

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="taskboard") or "taskboard"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskboard"))
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        # Accept the frontend-era name as a fallback so an existing .env keeps working.
        api_base_url = (
            _first_env(_k("API_BASE_URL"), "NEXT_PUBLIC_BACKEND_URL", default="http://127.0.0.1:8000")
            or "http://127.0.0.1:8000"
        ).strip().rstrip("/")
        api_token = _first_env(_k("API_TOKEN"), default=None)

        connect_timeout_seconds = _env_float(_k("CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout_seconds = _env_float(_k("READ_TIMEOUT_SECONDS"), 20.0)

        role = _env(_k("ROLE"), "Developer")
        user_id = _first_env(_k("USER_ID"), default=None)
        department_name = _first_env(_k("DEPARTMENT"), default=None)

        search_debounce_ms = _env_int(_k("SEARCH_DEBOUNCE_MS"), 300)
        search_cache_ttl_seconds = _env_float(_k("SEARCH_CACHE_TTL_SECONDS"), 300.0)
        search_cache_max_entries = _env_int(_k("SEARCH_CACHE_MAX_ENTRIES"), 10)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            console_enabled=console_enabled,
            api_base_url=api_base_url,
            api_token=api_token.strip() if api_token else None,
            connect_timeout_seconds=connect_timeout_seconds,
            read_timeout_seconds=max(read_timeout_seconds, connect_timeout_seconds),
            role=role,
            user_id=user_id,
            department_name=department_name,
            search_debounce_ms=search_debounce_ms,
            search_cache_ttl_seconds=search_cache_ttl_seconds,
            search_cache_max_entries=max(1, search_cache_max_entries),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
