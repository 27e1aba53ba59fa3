"""
Local Steam client utilities.

Reads appmanifest_<id>.acf files from a Steam library to report install
state, and hands steam://install / steam://uninstall URLs to the OS so the
running Steam client performs the actual work.
"""

import logging
import os
import subprocess
import sys
from typing import Optional

import vdf

from steamshelf.exceptions import SteamClientError

logger = logging.getLogger(__name__)


class SteamLocalClient:
    """Interface to the locally installed Steam client."""

    def __init__(self, steamapps_path: Optional[str]):
        """
        Args:
            steamapps_path: The library's steamapps directory
                (e.g. ~/.steam/steam/steamapps), or None if Steam is absent
        """
        self.steamapps_path = steamapps_path

    def get_manifest_path(self, steam_game_id: str) -> Optional[str]:
        if not self.steamapps_path:
            return None
        return os.path.join(self.steamapps_path, f"appmanifest_{steam_game_id}.acf")

    def is_installed(self, steam_game_id: str) -> bool:
        """Check whether a game is fully installed in this library.

        A game counts as installed only when its manifest exists and its
        BytesToDownload and BytesDownloaded fields are both present and equal.
        Any read or parse problem is reported as not installed.
        """
        manifest_path = self.get_manifest_path(steam_game_id)
        if not manifest_path or not os.path.exists(manifest_path):
            return False

        try:
            with open(manifest_path, 'r', encoding='utf-8', errors='ignore') as f:
                data = vdf.load(f)
        except Exception as e:
            logger.debug(f"[Steam] Unable to parse {manifest_path}: {e}")
            return False

        app_state = data.get('AppState', {})
        bytes_to_download = app_state.get('BytesToDownload')
        bytes_downloaded = app_state.get('BytesDownloaded')

        if bytes_to_download is None or bytes_downloaded is None:
            return False

        try:
            return int(bytes_to_download) == int(bytes_downloaded)
        except ValueError:
            return False

    def install(self, steam_game_id: str) -> bool:
        """Ask Steam to install a game. True means the URL was dispatched."""
        return self._open_url(f"steam://install/{steam_game_id}")

    def uninstall(self, steam_game_id: str) -> bool:
        """Ask Steam to uninstall a game. True means the URL was dispatched."""
        return self._open_url(f"steam://uninstall/{steam_game_id}")

    def _open_url(self, url: str) -> bool:
        logger.info(f"[Steam] Dispatching {url}")
        try:
            if sys.platform.startswith('win'):
                os.startfile(url)
            else:
                opener = 'open' if sys.platform == 'darwin' else 'xdg-open'
                subprocess.Popen([opener, url],
                                 stdout=subprocess.DEVNULL,
                                 stderr=subprocess.DEVNULL)
        except OSError as e:
            raise SteamClientError(f"unable to open {url}: {e}") from e
        return True
