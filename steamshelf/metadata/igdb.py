"""
IGDB metadata resolver.

Maps Steam app ids to IGDB games and returns CatalogGameRecord objects.
Every request is a POST with an Apicalypse query body, authenticated with a
Twitch bearer token. A 401 triggers exactly one token refresh and one retry
of the same request; a second 401 is a TransportError.
"""
import asyncio
import json
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp

from steamshelf.exceptions import NotFoundError, TransportError
from steamshelf.models import CatalogGameRecord, Company

logger = logging.getLogger(__name__)

IGDB_API_BASE = "https://api.igdb.com/v4"
EXTERNAL_GAMES_URL = f"{IGDB_API_BASE}/external_games"
GAMES_URL = f"{IGDB_API_BASE}/games"

# IGDB rejects queries with more ids than this
BATCH_LIMIT = 500

# external_game_source value for Steam
STEAM_SOURCE = 1

GAME_FIELDS = "fields *, genres.name, artworks.image_id, cover.image_id, involved_companies.company.*;"


class TokenState(Enum):
    NO_TOKEN = "no_token"
    VALID = "valid"
    RETRYING_AFTER_REFRESH = "retrying_after_refresh"


def chunked(items: List[Any], size: int) -> Iterable[List[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def split_companies(involved_companies: Optional[List[Dict[str, Any]]], game_id: int) -> Tuple[List[Company], List[Company]]:
    """Split involved companies into (publishers, developers) for one game.

    A company is a developer when game_id is in its 'developed' list and a
    publisher when game_id is in its 'published' list; it can be both.
    """
    publishers: List[Company] = []
    developers: List[Company] = []

    for involved in involved_companies or []:
        company = involved.get('company') if isinstance(involved, dict) else None
        if not isinstance(company, dict):
            continue

        entry = Company(igdb_id=company.get('id'), name=company.get('name'))

        if game_id in (company.get('published') or []):
            publishers.append(entry)
        if game_id in (company.get('developed') or []):
            developers.append(entry)

    return publishers, developers


def parse_game_info(raw: Dict[str, Any], external_id: Optional[str]) -> CatalogGameRecord:
    """Convert a raw /games entry into a CatalogGameRecord."""
    try:
        game_id = int(raw['id'])
        name = raw['name']
    except (KeyError, TypeError, ValueError) as e:
        raise TransportError(f"IGDB game entry is missing id/name: {e}", url=GAMES_URL) from e

    publishers, developers = split_companies(raw.get('involved_companies'), game_id)
    cover = raw.get('cover')

    return CatalogGameRecord(
        catalog_id=game_id,
        name=name,
        external_id=external_id,
        summary=raw.get('summary'),
        storyline=raw.get('storyline'),
        release_date=raw.get('first_release_date'),
        genres=[g['name'] for g in raw.get('genres') or [] if g.get('name')],
        developers=developers,
        publishers=publishers,
        cover_image_id=cover.get('image_id') if isinstance(cover, dict) else None,
        artwork_image_ids=[a['image_id'] for a in raw.get('artworks') or [] if a.get('image_id')],
    )


class IgdbClient:
    """Async IGDB client.

    Holds the bearer token as mutable state. Public calls are serialized
    through an asyncio.Lock, so at most one resolve is in flight per
    instance.
    """

    def __init__(self, auth_client, session: aiohttp.ClientSession, client_id: str):
        """
        Args:
            auth_client: TwitchAuthClient (get_cached_token / refresh_token)
            session: Shared aiohttp session
            client_id: Twitch application client id, sent as Client-ID
        """
        self.auth = auth_client
        self.session = session
        self.client_id = client_id

        self._token: Optional[str] = None
        self.token_state = TokenState.NO_TOKEN
        self._lock = asyncio.Lock()

    async def resolve_one(self, steam_game_id: int) -> CatalogGameRecord:
        """Resolve a single Steam app id.

        Raises:
            NotFoundError: if IGDB has no game linked to this app id
            TransportError: on any request failure
        """
        async with self._lock:
            query = (
                f'fields *; where external_game_source = {STEAM_SOURCE} & '
                f'url = "https://store.steampowered.com/app/{steam_game_id}"; limit 1;'
            )
            links = await self._request_with_retry(EXTERNAL_GAMES_URL, query)
            if not links:
                raise NotFoundError(f"no IGDB game for Steam app {steam_game_id}")

            catalog_id = self._link_game_id(links[-1])
            infos = await self._request_with_retry(GAMES_URL, f"{GAME_FIELDS} where id = {catalog_id}; limit 1;")
            if not infos:
                raise NotFoundError(f"IGDB game {catalog_id} not found")

            return parse_game_info(infos[-1], str(steam_game_id))

    async def resolve_batch(self, steam_game_ids: Iterable[int]) -> List[CatalogGameRecord]:
        """Resolve many Steam app ids, silently dropping those IGDB does not know.

        Ids are processed in chunks of BATCH_LIMIT: one external_games lookup
        and one games request per chunk. Any failing request fails the
        whole batch.
        """
        ids = sorted(set(int(i) for i in steam_game_ids))
        if not ids:
            return []

        async with self._lock:
            records: List[CatalogGameRecord] = []
            resolved_ids = set()

            for chunk_index, chunk in enumerate(chunked(ids, BATCH_LIMIT), start=1):
                store_ids = await self._lookup_external_ids(chunk)
                catalog_ids = [cid for cid in store_ids if cid not in resolved_ids]
                logger.info(
                    f"[IGDB] Chunk {chunk_index}: {len(chunk)} Steam ids -> {len(store_ids)} IGDB games"
                )
                if not catalog_ids:
                    continue

                id_list = ",".join(str(cid) for cid in catalog_ids)
                query = f"{GAME_FIELDS} where id = ({id_list}); limit {len(catalog_ids)};"
                for raw in await self._request_with_retry(GAMES_URL, query):
                    record = parse_game_info(raw, None)
                    record.external_id = store_ids.get(record.catalog_id)
                    resolved_ids.add(record.catalog_id)
                    records.append(record)

            logger.info(f"[IGDB] Resolved {len(records)}/{len(ids)} owned games")
            return records

    async def _lookup_external_ids(self, steam_game_ids: List[int]) -> Dict[int, str]:
        """Return {igdb_game_id: steam_uid} for the ids IGDB knows about."""
        uids = ",".join(f'"{game_id}"' for game_id in steam_game_ids)
        query = (
            f"fields *; where external_game_source = {STEAM_SOURCE} & uid = ({uids}); "
            f"limit {len(steam_game_ids)};"
        )
        mapping: Dict[int, str] = {}
        for link in await self._request_with_retry(EXTERNAL_GAMES_URL, query):
            try:
                mapping[self._link_game_id(link)] = str(link['uid'])
            except KeyError as e:
                raise TransportError(f"external_games entry is missing {e}", url=EXTERNAL_GAMES_URL) from e
        return mapping

    @staticmethod
    def _link_game_id(link: Dict[str, Any]) -> int:
        try:
            return int(link['game'])
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"external_games entry has no game id: {e}", url=EXTERNAL_GAMES_URL) from e

    async def _get_token(self) -> str:
        if self.token_state is TokenState.VALID and self._token:
            return self._token

        cached = self.auth.get_cached_token()
        if cached:
            self._token = cached
        else:
            self._token = await self.auth.refresh_token()
        self.token_state = TokenState.VALID
        return self._token

    async def _request_with_retry(self, url: str, query: str) -> List[Dict[str, Any]]:
        """POST a query, refreshing the token and retrying once on 401."""
        token = await self._get_token()
        status, body = await self._post(url, query, token)

        if status == 401:
            logger.warning(f"[IGDB] 401 from {url}, refreshing token")
            self.token_state = TokenState.RETRYING_AFTER_REFRESH
            self._token = None
            # AuthError from the exchange propagates as is
            self._token = await self.auth.refresh_token()
            status, body = await self._post(url, query, self._token)

            if status == 401:
                self.token_state = TokenState.NO_TOKEN
                self._token = None
                raise TransportError(f"IGDB rejected refreshed token for {url}", status=401, url=url)

        self.token_state = TokenState.VALID

        if not 200 <= status < 300:
            raise TransportError(f"IGDB request failed: HTTP {status}", status=status, url=url)

        try:
            data = json.loads(body)
        except ValueError as e:
            raise TransportError(f"IGDB returned invalid JSON: {e}", status=status, url=url) from e

        if not isinstance(data, list):
            raise TransportError("IGDB response is not a list", status=status, url=url)
        return data

    async def _post(self, url: str, query: str, token: str) -> Tuple[int, str]:
        headers = {
            'Client-ID': self.client_id,
            'Authorization': f'Bearer {token}',
            'Accept': 'application/json',
        }
        try:
            async with self.session.post(url, data=query, headers=headers) as response:
                return response.status, await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"IGDB request to {url} failed: {e}", url=url) from e
