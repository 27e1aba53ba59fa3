"""
Steam Web API connector.

Lists the games owned by one profile through IPlayerService/GetOwnedGames.
"""
import asyncio
import logging
from typing import List

import aiohttp

from steamshelf.exceptions import TransportError
from steamshelf.models import OwnedGameRef

from .base import Store

logger = logging.getLogger(__name__)


class SteamStore(Store):
    """Steam Web API client for one profile (SteamID64)."""

    OWNED_GAMES_URL = "https://api.steampowered.com/IPlayerService/GetOwnedGames/v0001"

    def __init__(self, api_key: str, profile_id: str, session: aiohttp.ClientSession):
        self.api_key = api_key
        self.profile_id = profile_id
        self.session = session

    @property
    def store_name(self) -> str:
        return 'steam'

    async def get_library(self) -> List[OwnedGameRef]:
        """Fetch every game owned by the configured profile."""
        params = {
            'key': self.api_key,
            'steamid': self.profile_id,
            'include_appinfo': '1',
            'format': 'json',
        }
        try:
            async with self.session.get(self.OWNED_GAMES_URL, params=params) as response:
                if response.status != 200:
                    raise TransportError(
                        f"GetOwnedGames failed: HTTP {response.status}",
                        status=response.status,
                        url=self.OWNED_GAMES_URL,
                    )
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"GetOwnedGames failed: {e}", url=self.OWNED_GAMES_URL) from e
        except ValueError as e:
            raise TransportError(f"GetOwnedGames returned invalid JSON: {e}", url=self.OWNED_GAMES_URL) from e

        if not isinstance(data, dict) or not isinstance(data.get('response'), dict):
            raise TransportError("GetOwnedGames response has no 'response' object", url=self.OWNED_GAMES_URL)

        # Private profiles answer with an empty response object
        raw_games = data['response'].get('games')
        if raw_games is None:
            logger.warning("[Steam] GetOwnedGames returned no games (private profile?)")
            return []

        games = []
        try:
            for raw in raw_games:
                games.append(OwnedGameRef(
                    external_id=int(raw['appid']),
                    name=raw.get('name', ''),
                    playtime_minutes=raw.get('playtime_forever'),
                ))
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"GetOwnedGames returned a malformed game entry: {e}", url=self.OWNED_GAMES_URL) from e

        logger.info(f"[Steam] Found {len(games)} owned games")
        return games
