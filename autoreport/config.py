"""
Runtime settings.

Precedence, lowest to highest: built-in defaults, a JSON config file
(``autoreport.json`` in the working directory unless a path is given),
``AUTOREPORT_*`` environment variables.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

from autoreport.coercion import DEFAULT_DISPLAY_DATE_FORMAT, format_display_date
from autoreport.loader import DEFAULT_MAX_UPLOAD_BYTES

DEFAULT_CONFIG_NAME = "autoreport.json"
DEFAULT_MAX_PREVIEW_ROWS = 100
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

ENV_MAX_UPLOAD_BYTES = "AUTOREPORT_MAX_UPLOAD_BYTES"
ENV_MAX_PREVIEW_ROWS = "AUTOREPORT_MAX_PREVIEW_ROWS"
ENV_DATE_FORMAT = "AUTOREPORT_DATE_FORMAT"
ENV_FIELD_TABLE = "AUTOREPORT_FIELD_TABLE"
ENV_LOG_LEVEL = "AUTOREPORT_LOG_LEVEL"

STARTER_CONFIG = {
    "max_upload_bytes": DEFAULT_MAX_UPLOAD_BYTES,
    "max_preview_rows": DEFAULT_MAX_PREVIEW_ROWS,
    "display_date_format": DEFAULT_DISPLAY_DATE_FORMAT,
    "field_table_path": None,
    "log_level": "INFO",
}

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    max_preview_rows: int = DEFAULT_MAX_PREVIEW_ROWS
    display_date_format: str = DEFAULT_DISPLAY_DATE_FORMAT
    field_table_path: Optional[str] = None
    log_level: str = "INFO"

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_upload_bytes": self.max_upload_bytes,
            "max_preview_rows": self.max_preview_rows,
            "display_date_format": self.display_date_format,
            "field_table_path": self.field_table_path,
            "log_level": self.log_level,
        }


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a positive integer, got {value!r}") from None
    if number <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return number


def _date_format(value: Any) -> str:
    template = str(value)
    try:
        format_display_date(datetime(2024, 1, 31), template)
    except (KeyError, IndexError, ValueError) as exc:
        raise ValueError(
            f"display_date_format {template!r} is invalid; use {{day}}, {{month}}, {{year}}, {{dd}}, {{mm}}"
        ) from exc
    return template


def _log_level(value: Any) -> str:
    level = str(value).strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
    return level


def apply_overrides(settings: Settings, values: Mapping[str, Any]) -> Settings:
    """Validate and merge known keys; unknown keys are rejected."""
    unknown = sorted(set(values) - set(STARTER_CONFIG))
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
    changes: dict[str, Any] = {}
    if "max_upload_bytes" in values:
        changes["max_upload_bytes"] = _positive_int("max_upload_bytes", values["max_upload_bytes"])
    if "max_preview_rows" in values:
        changes["max_preview_rows"] = _positive_int("max_preview_rows", values["max_preview_rows"])
    if "display_date_format" in values:
        changes["display_date_format"] = _date_format(values["display_date_format"])
    if "field_table_path" in values:
        path = values["field_table_path"]
        changes["field_table_path"] = str(path) if path else None
    if "log_level" in values:
        changes["log_level"] = _log_level(values["log_level"])
    return replace(settings, **changes)


def read_config_file(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    if suffix in {".yml", ".yaml"}:
        raise ValueError("YAML config files are not supported. Use JSON.")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Could not read config {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Config root must be a JSON object.")
    return payload


def env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    pairs = {
        "max_upload_bytes": env.get(ENV_MAX_UPLOAD_BYTES),
        "max_preview_rows": env.get(ENV_MAX_PREVIEW_ROWS),
        "display_date_format": env.get(ENV_DATE_FORMAT),
        "field_table_path": env.get(ENV_FIELD_TABLE),
        "log_level": env.get(ENV_LOG_LEVEL),
    }
    return {key: value for key, value in pairs.items() if value}


def load_settings(
    path: "str | Path | None" = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Resolve settings from defaults, config file and environment.

    An explicit ``path`` must exist. Without one, ``autoreport.json`` in the
    working directory is used when present.
    """
    env = os.environ if env is None else env
    settings = Settings()
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")
    else:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME
    if config_path.exists():
        settings = apply_overrides(settings, read_config_file(config_path))
        logger.debug("Loaded config from %s", config_path)
    return apply_overrides(settings, env_overrides(env))


def starter_config_text() -> str:
    return json.dumps(STARTER_CONFIG, indent=2) + "\n"
