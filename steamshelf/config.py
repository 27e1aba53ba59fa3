"""
Settings loading.

Sources, lowest to highest precedence:
- ~/.local/share/steamshelf/settings.json
- environment variables (a .env file in the current or parent directory
  is loaded into the environment first, never overriding real variables)
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from steamshelf.exceptions import ConfigError
from steamshelf.utils.paths import SETTINGS_PATH, STEAMSHELF_DATA_DIR, find_steam_library_path

logger = logging.getLogger(__name__)

REQUIRED_KEYS = (
    "STEAM_API_KEY",
    "STEAM_PROFILE_ID",
    "TWITCH_CLIENT_ID",
    "TWITCH_CLIENT_SECRET",
)


@dataclass
class Settings:
    steam_api_key: str
    steam_profile_id: str
    twitch_client_id: str
    twitch_client_secret: str
    data_dir: str = STEAMSHELF_DATA_DIR
    steam_library_path: Optional[str] = None


def load_dotenv_file(cwd: Optional[Path] = None) -> Optional[Path]:
    """Load the first .env found in cwd or its parent into os.environ."""
    cwd = cwd or Path.cwd()
    for candidate in (cwd / ".env", cwd.parent / ".env"):
        if candidate.is_file():
            load_dotenv(candidate, override=False)
            logger.debug(f"[Config] Loaded environment from {candidate}")
            return candidate
    return None


def _load_settings_file(path: str) -> Dict[str, str]:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"unable to read settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"settings file {path} must contain a JSON object")
    return {str(k): str(v) for k, v in data.items() if v is not None}


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    settings_path: str = SETTINGS_PATH,
    use_dotenv: bool = True,
) -> Settings:
    """Build Settings from the settings file and the environment.

    Args:
        environ: Mapping to read variables from (defaults to os.environ)
        settings_path: JSON settings file location
        use_dotenv: Whether to load a .env file into os.environ first

    Raises:
        ConfigError: if any required key is missing
    """
    if use_dotenv and environ is None:
        load_dotenv_file()

    values = _load_settings_file(settings_path)
    values.update({k: v for k, v in (environ if environ is not None else os.environ).items() if v})

    missing = [key for key in REQUIRED_KEYS if not values.get(key)]
    if missing:
        raise ConfigError(f"missing required settings: {', '.join(missing)}")

    return Settings(
        steam_api_key=values["STEAM_API_KEY"],
        steam_profile_id=values["STEAM_PROFILE_ID"],
        twitch_client_id=values["TWITCH_CLIENT_ID"],
        twitch_client_secret=values["TWITCH_CLIENT_SECRET"],
        data_dir=os.path.expanduser(values.get("STEAMSHELF_DATA_DIR", STEAMSHELF_DATA_DIR)),
        steam_library_path=values.get("STEAM_LIBRARY_PATH") or find_steam_library_path(),
    )
