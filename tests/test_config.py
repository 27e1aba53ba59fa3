from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from steamshelf.config import load_dotenv_file, load_settings
from steamshelf.exceptions import ConfigError

REQUIRED = {
    "STEAM_API_KEY": "key",
    "STEAM_PROFILE_ID": "76561198000000000",
    "TWITCH_CLIENT_ID": "twitch-id",
    "TWITCH_CLIENT_SECRET": "twitch-secret",
}


def test_load_settings_from_environment(tmp_path: Path) -> None:
    environ = dict(REQUIRED, STEAMSHELF_DATA_DIR=str(tmp_path), STEAM_LIBRARY_PATH="/steam/steamapps")

    settings = load_settings(environ=environ, settings_path=str(tmp_path / "missing.json"))

    assert settings.steam_api_key == "key"
    assert settings.twitch_client_secret == "twitch-secret"
    assert settings.data_dir == str(tmp_path)
    assert settings.steam_library_path == "/steam/steamapps"


def test_environment_overrides_settings_file(tmp_path: Path) -> None:
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(json.dumps(dict(REQUIRED, STEAM_API_KEY="from-file")))

    from_file = load_settings(environ={}, settings_path=str(settings_file))
    from_env = load_settings(environ={"STEAM_API_KEY": "from-env"}, settings_path=str(settings_file))

    assert from_file.steam_api_key == "from-file"
    assert from_env.steam_api_key == "from-env"


def test_missing_keys_are_all_named(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_settings(environ={"STEAM_API_KEY": "key"}, settings_path=str(tmp_path / "missing.json"))

    message = str(exc_info.value)
    assert "STEAM_PROFILE_ID" in message
    assert "TWITCH_CLIENT_ID" in message
    assert "TWITCH_CLIENT_SECRET" in message
    assert "STEAM_API_KEY" not in message


def test_broken_settings_file_raises(tmp_path: Path) -> None:
    settings_file = tmp_path / "settings.json"
    settings_file.write_text("{broken")

    with pytest.raises(ConfigError):
        load_settings(environ=dict(REQUIRED), settings_path=str(settings_file))


def test_steam_library_auto_detected(tmp_path: Path) -> None:
    with patch("steamshelf.config.find_steam_library_path", return_value="/home/deck/.steam/steam/steamapps"):
        settings = load_settings(environ=dict(REQUIRED), settings_path=str(tmp_path / "missing.json"))

    assert settings.steam_library_path == "/home/deck/.steam/steam/steamapps"


def test_dotenv_found_in_parent_directory(tmp_path: Path) -> None:
    child = tmp_path / "child"
    child.mkdir()
    (tmp_path / ".env").write_text("STEAMSHELF_TEST_DOTENV=from-dotenv\n")

    with patch.dict(os.environ, {}, clear=False):
        os.environ.pop("STEAMSHELF_TEST_DOTENV", None)
        found = load_dotenv_file(child)
        assert os.environ["STEAMSHELF_TEST_DOTENV"] == "from-dotenv"

    assert found == tmp_path / ".env"


def test_dotenv_does_not_override_environment(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text("STEAMSHELF_TEST_DOTENV=from-dotenv\n")

    with patch.dict(os.environ, {"STEAMSHELF_TEST_DOTENV": "real"}):
        load_dotenv_file(tmp_path)
        assert os.environ["STEAMSHELF_TEST_DOTENV"] == "real"
