# src/ganttline/config.py

"""Settings loaded from GANTT_* environment variables (+ optional .env).

- One Settings object for the whole app, built once at import.
- Nothing is required: without GANTT_STORE_BASE_URL the offline demo store is used.
- The CRM frontend's variable names (CRM_API_BASE_URL, CRM_API_TOKEN) are accepted as fallbacks.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "GANTT"

# Variables already set in the environment win over .env.
load_dotenv(override=False)


def _raw(suffix: str, *fallbacks: str) -> str | None:
    """First non-blank value of GANTT_<suffix> or the fallback names."""
    for name in (f"{ENV_PREFIX}_{suffix}", *fallbacks):
        value = os.getenv(name)
        if value is not None and value.strip():
            return value.strip()
    return None


def _env_str(suffix: str, default: str = "", *fallbacks: str) -> str:
    value = _raw(suffix, *fallbacks)
    return default if value is None else value


def _env_bool(suffix: str, default: bool) -> bool:
    value = _raw(suffix)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "y", "on"}


def _env_float(suffix: str, default: float, *, minimum: float) -> float:
    value = _raw(suffix)
    try:
        number = default if value is None else float(value)
    except ValueError:
        number = default
    return max(minimum, number)


def _env_path(suffix: str, default: Path) -> Path:
    value = _raw(suffix)
    return default if value is None else Path(value).expanduser()


def _check_base_url(url: str) -> str:
    if url and not url.startswith(("http://", "https://")):
        raise ValueError(f"{ENV_PREFIX}_STORE_BASE_URL must be an http(s) URL, got {url!r}")
    return url.rstrip("/")


@dataclass(frozen=True, slots=True)
class Settings:
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Task store (CRM API) ----
    store_base_url: str
    store_api_token: Optional[str]
    store_timeout_seconds: float
    default_project_id: Optional[str]

    # ---- Local data (logs, exports) ----
    data_dir: Path
    export_dir: Path

    @property
    def offline(self) -> bool:
        return not self.store_base_url

    @property
    def console_log_level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path("DATA_DIR", Path(".local/ganttline"))
        return Settings(
            app_name=_env_str("APP_NAME", "ganttline"),
            log_level=_env_str("LOG_LEVEL", "INFO"),
            console_enabled=_env_bool("CONSOLE_ENABLED", True),
            store_base_url=_check_base_url(_env_str("STORE_BASE_URL", "", "CRM_API_BASE_URL")),
            store_api_token=_raw("STORE_API_TOKEN", "CRM_API_TOKEN"),
            store_timeout_seconds=_env_float("STORE_TIMEOUT_SECONDS", 15.0, minimum=1.0),
            default_project_id=_raw("DEFAULT_PROJECT_ID"),
            data_dir=data_dir,
            export_dir=_env_path("EXPORT_DIR", data_dir / "exports"),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
