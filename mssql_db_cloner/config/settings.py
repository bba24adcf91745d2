"""Settings storage for application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_PATH = Path(
    os.environ.get(
        "MSSQL_DB_CLONER_SETTINGS_PATH",
        Path.home() / ".config" / "mssql-db-cloner" / "settings.json",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_DUMP_DIR = "X:\\SQL_Dump\\Default\\"
DEFAULT_BACKUP_AGE_DAYS = 1
DEFAULT_TARGET_SUFFIX = "COPY"
DEFAULT_VLF_WARNING_THRESHOLD = 1000
DEFAULT_PORT = 1433

DEFAULT_SETTINGS: dict[str, Any] = {
    "server": "localhost",
    "trusted_connection": True,
    "username": None,
    "port": DEFAULT_PORT,
    "query_timeout_seconds": None,
    "dump_dir": DEFAULT_DUMP_DIR,
    "backup_software_name": None,
    "backup_age_days": DEFAULT_BACKUP_AGE_DAYS,
    "target_suffix": DEFAULT_TARGET_SUFFIX,
    "vlf_warning_threshold": DEFAULT_VLF_WARNING_THRESHOLD,
    "volume_query": "engine",
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings() -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    if not SETTINGS_PATH.exists():
        return
    try:
        data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return
    if isinstance(data, dict):
        settings_store.values.update(data)


def save_settings() -> None:
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    SETTINGS_PATH.write_text(
        json.dumps(settings_store.values, indent=2, sort_keys=True),
        encoding="utf-8",
    )


def get_setting(key: str, default: Any | None = None) -> Any:
    return settings_store.values.get(key, default)


def set_setting(key: str, value: Any) -> None:
    settings_store.values[key] = value
    save_settings()


def get_bool(key: str, default: bool = False) -> bool:
    return bool(get_setting(key, default))


def get_int(key: str, default: int | None = None) -> int | None:
    """Return an integer setting, falling back to ``default`` on bad values."""
    value = get_setting(key, default)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


load_settings()
