"""Steamshelf file path constants and utilities."""

import os
from pathlib import Path
from typing import Optional


# Steamshelf data directory
STEAMSHELF_DATA_DIR = os.path.expanduser("~/.local/share/steamshelf")

# Files and folders inside the data directory
DATABASE_FILE = "steamshelf.db"
ASSETS_DIR = "assets"
SETTINGS_FILE = "settings.json"
SETTINGS_PATH = os.path.join(STEAMSHELF_DATA_DIR, SETTINGS_FILE)

# Candidate Steam installations, checked in order
STEAM_INSTALL_PATHS = [
    os.path.expanduser("~/.steam/steam"),
    os.path.expanduser("~/.local/share/Steam"),
]


def get_database_path(data_dir: str) -> Path:
    """Path of the SQLite library database inside data_dir."""
    return Path(data_dir) / DATABASE_FILE


def get_assets_path(data_dir: str) -> Path:
    """Root of the mirrored image cache inside data_dir."""
    return Path(data_dir) / ASSETS_DIR


def find_steam_library_path() -> Optional[str]:
    """Find the steamapps directory of the local Steam installation.

    Returns:
        Path to <steam>/steamapps, or None if Steam is not installed
    """
    for path in STEAM_INSTALL_PATHS:
        steamapps = os.path.join(path, "steamapps")
        if os.path.exists(steamapps):
            return steamapps

    return None
