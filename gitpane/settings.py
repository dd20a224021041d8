"""Configuration loading for gitpane."""

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import cast

SETTINGS_ENV = "GITPANE_SETTINGS"


class SettingsError(Exception):
    """Settings file is missing required structure or has bad values."""


def _default_state_dir() -> Path:
    return Path.home() / ".cache" / "gitpane"


@dataclass(frozen=True)
class Settings:
    git_binary: str = "git"
    poll_interval: float = 5.0
    command_timeout: float | None = 300.0
    status_log_limit: int = 20
    log_limit: int = 500
    max_workers: int = 4
    state_dir: Path = field(default_factory=_default_state_dir)
    diff_tool: str | None = "git difftool --no-prompt"


def settings_path() -> Path:
    override = os.environ.get(SETTINGS_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "gitpane" / "settings.json"


def _load_raw(path: Path) -> dict[str, object]:
    if not path.is_file():
        return {}

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SettingsError(f"Invalid JSON in {path}") from exc

    if not isinstance(raw, dict):
        raise SettingsError(f"Invalid settings format in {path}")
    return cast(dict[str, object], raw)


def _expect_number(key: str, value: object, allow_none: bool = False) -> float | None:
    if value is None and allow_none:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise SettingsError(f"Setting '{key}' must be a positive number.")
    return float(value)


def _expect_int(key: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise SettingsError(f"Setting '{key}' must be a positive integer.")
    return value


def _expect_str(key: str, value: object, allow_none: bool = False) -> str | None:
    if value is None and allow_none:
        return None
    if not isinstance(value, str) or not value.strip():
        raise SettingsError(f"Setting '{key}' must be a non-empty string.")
    return value


def parse_settings(raw: dict[str, object]) -> Settings:
    """Validate a decoded settings object and merge it over the defaults."""
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise SettingsError(f"Unknown settings: {', '.join(unknown)}")

    values: dict[str, object] = {}
    for key, value in raw.items():
        if key == "poll_interval":
            values[key] = _expect_number(key, value)
        elif key == "command_timeout":
            values[key] = _expect_number(key, value, allow_none=True)
        elif key in ("status_log_limit", "log_limit", "max_workers"):
            values[key] = _expect_int(key, value)
        elif key == "state_dir":
            values[key] = Path(cast(str, _expect_str(key, value))).expanduser()
        elif key == "diff_tool":
            values[key] = _expect_str(key, value, allow_none=True)
        else:
            values[key] = _expect_str(key, value)
    return replace(Settings(), **values)  # type: ignore[arg-type]


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from path (or the default location); a missing file means defaults."""
    return parse_settings(_load_raw(path or settings_path()))
