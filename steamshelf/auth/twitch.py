"""
Twitch OAuth client-credentials flow.

IGDB accepts Twitch application tokens. This client only performs the
credential exchange; deciding when to refresh is up to the caller.
"""
import asyncio
import logging
from typing import Optional

import aiohttp

from steamshelf.exceptions import AuthError

logger = logging.getLogger(__name__)


class TwitchAuthClient:
    """Obtains app access tokens from id.twitch.tv"""

    TOKEN_URL = "https://id.twitch.tv/oauth2/token"

    def __init__(self, client_id: str, client_secret: str, session: aiohttp.ClientSession):
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session
        self._last_token: Optional[str] = None

    def get_cached_token(self) -> Optional[str]:
        """Token from the last successful exchange, if any."""
        return self._last_token

    async def refresh_token(self) -> str:
        """Perform a live client-credentials exchange.

        Raises:
            AuthError: on network failure, non-200 status or a response
                without an access_token
        """
        params = {
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'grant_type': 'client_credentials',
        }
        try:
            async with self.session.post(self.TOKEN_URL, params=params) as response:
                if response.status != 200:
                    raise AuthError(f"token exchange failed: HTTP {response.status}")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthError(f"token exchange failed: {e}") from e
        except ValueError as e:
            raise AuthError(f"token exchange returned invalid JSON: {e}") from e

        token = data.get('access_token') if isinstance(data, dict) else None
        if not token:
            raise AuthError("token exchange response has no access_token")

        self._last_token = token
        logger.info("[Twitch] Obtained new access token")
        return token
