from __future__ import annotations

import json
from pathlib import Path

import pytest

from gitpane.settings import SETTINGS_ENV, Settings, SettingsError, load_settings, settings_path
from gitpane.store import PreferenceStore


def _write(path: Path, payload: object) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "absent.json")
    assert settings == Settings(state_dir=settings.state_dir)
    assert settings.poll_interval == 5.0
    assert settings.status_log_limit == 20


def test_values_override_defaults(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "settings.json",
        {
            "git_binary": "/usr/local/bin/git",
            "poll_interval": 2,
            "command_timeout": None,
            "state_dir": str(tmp_path / "state"),
            "diff_tool": None,
        },
    )
    settings = load_settings(path)
    assert settings.git_binary == "/usr/local/bin/git"
    assert settings.poll_interval == 2.0
    assert settings.command_timeout is None
    assert settings.state_dir == tmp_path / "state"
    assert settings.diff_tool is None
    assert settings.max_workers == 4


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        {"poll_interval": 0},
        {"max_workers": 1.5},
        {"status_log_limit": True},
        {"git_binary": ""},
        {"colour": "blue"},
    ],
)
def test_invalid_settings_raise(tmp_path: Path, payload: object) -> None:
    with pytest.raises(SettingsError):
        load_settings(_write(tmp_path / "settings.json", payload))


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(SettingsError, match="Invalid JSON"):
        load_settings(path)


def test_env_var_selects_settings_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write(tmp_path / "custom.json", {"log_limit": 50})
    monkeypatch.setenv(SETTINGS_ENV, str(path))
    assert settings_path() == path
    assert load_settings().log_limit == 50


def test_store_round_trip(tmp_path: Path) -> None:
    store = PreferenceStore(tmp_path / "state")
    assert store.saved_repositories() == []
    store.save_repositories([tmp_path / "a", tmp_path / "b"])
    assert PreferenceStore(tmp_path / "state").saved_repositories() == [
        tmp_path / "a",
        tmp_path / "b",
    ]
    store.set_string_list("other", ["x"])
    assert store.get_string_list("other") == ["x"]
    assert store.saved_repositories() == [tmp_path / "a", tmp_path / "b"]
