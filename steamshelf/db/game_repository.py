"""
Data access for game records.

insert_complete_game writes a game and all of its link rows in one
transaction. Reads aggregate every link table into per-game JSON arrays
and decode them through _parse_json_array, which drops null entries and
treats anything that is not a JSON array as a store bug.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from steamshelf.exceptions import NotFoundError, StoreError
from steamshelf.models import CatalogGameRecord, PersistedGame
from steamshelf.utils.fuzzy import matches_name

from .database import Database

logger = logging.getLogger(__name__)

BASE_QUERY = """
select
    games.id as id,
    games.name as name,
    games.summary as summary,
    games.release_date as release_date,
    (select store_id from games_store
        where games_store.game_id = games.id
        order by games_store.id desc limit 1) as store_id,
    (select json_group_array(distinct genres.name) from belongs_to
        join genres on genres.id = belongs_to.genre_id
        where belongs_to.game_id = games.id) as genres,
    (select json_group_array(distinct companies.name) from developed_by
        join companies on companies.id = developed_by.studio_id
        where developed_by.game_id = games.id) as developers,
    (select json_group_array(json_array(artwork_id, local_path)) from
        (select artwork_id, local_path from artworks
            where artworks.game_id = games.id order by artworks.id)) as artworks,
    (select json_group_array(json_array(cover_id, local_path)) from
        (select cover_id, local_path from covers
            where covers.game_id = games.id order by covers.id)) as covers
from games
"""

ORDER_BY = " order by games.name"

INSERT_GAME = "INSERT INTO games (name, summary, release_date) VALUES (?, ?, ?) RETURNING id"
INSERT_STORE = "INSERT INTO games_store (game_id, store_id) VALUES (?, ?)"
INSERT_COVER = "INSERT INTO covers (game_id, cover_id) VALUES (?, ?)"
INSERT_ARTWORK = "INSERT INTO artworks (game_id, artwork_id) VALUES (?, ?)"
UPSERT_GENRE = (
    "INSERT INTO genres (name) VALUES (?) "
    "ON CONFLICT(name) DO UPDATE SET name = name RETURNING id"
)
INSERT_BELONGS_TO = "INSERT INTO belongs_to (game_id, genre_id) VALUES (?, ?)"
UPSERT_COMPANY = (
    "INSERT INTO companies (igdb_id, name) VALUES (?, ?) "
    "ON CONFLICT(igdb_id) DO UPDATE SET igdb_id = igdb_id RETURNING id"
)
INSERT_DEVELOPED_BY = "INSERT INTO developed_by (game_id, studio_id) VALUES (?, ?)"


def _parse_json_array(value: Optional[str], column: str) -> List[Any]:
    """Decode a json_group_array column, dropping null entries."""
    if value is None:
        return []
    try:
        items = json.loads(value)
    except ValueError as e:
        raise StoreError(f"malformed aggregate in column '{column}': {e}") from e
    if not isinstance(items, list):
        raise StoreError(f"aggregate in column '{column}' is not a JSON array")
    return [item for item in items if item is not None]


def _parse_asset_pairs(value: Optional[str], column: str) -> List[List[Optional[str]]]:
    """Decode [[image_id, local_path], ...], dropping pairs without an image id."""
    pairs = _parse_json_array(value, column)
    for pair in pairs:
        if not isinstance(pair, list) or len(pair) != 2:
            raise StoreError(f"aggregate in column '{column}' holds a malformed pair: {pair!r}")
    return [pair for pair in pairs if pair[0] is not None]


class GameRepository:
    """Data-access object for the games table and its link tables."""

    def __init__(self, db: Database):
        self.db = db

    async def clean(self) -> None:
        """Remove every game and link row. The asset cache is not touched."""
        await self.db.clean()

    async def insert_complete_game(self, game: CatalogGameRecord) -> int:
        """Insert a game and all its related rows in a single transaction.

        Rows created:
        - the core row (games)
        - its Steam app id (games_store), if known
        - its cover (covers), if any
        - one row per artwork (artworks)
        - each genre, upserted by name, plus a belongs_to link
        - each developer, upserted by IGDB company id, plus a developed_by link

        Returns:
            The new game's id

        Raises:
            StoreError: if any step fails; nothing of the game is kept
        """
        async with self.db.transaction() as conn:
            rows = await conn.execute_fetchall(INSERT_GAME, (game.name, game.summary, game.release_date))
            game_id = list(rows)[0][0]

            if game.external_id is not None:
                await conn.execute(INSERT_STORE, (game_id, game.external_id))

            if game.cover_image_id:
                await conn.execute(INSERT_COVER, (game_id, game.cover_image_id))

            for artwork_id in game.artwork_image_ids:
                await conn.execute(INSERT_ARTWORK, (game_id, artwork_id))

            for genre in game.genres:
                rows = await conn.execute_fetchall(UPSERT_GENRE, (genre,))
                await conn.execute(INSERT_BELONGS_TO, (game_id, list(rows)[0][0]))

            for developer in game.developers:
                rows = await conn.execute_fetchall(UPSERT_COMPANY, (developer.igdb_id, developer.name))
                await conn.execute(INSERT_DEVELOPED_BY, (game_id, list(rows)[0][0]))

        logger.debug(f"[DB] Inserted game {game_id}: {game.name}")
        return game_id

    async def get_games(self, name: Optional[str] = None) -> List[PersistedGame]:
        """All games ordered by name, optionally filtered by a fuzzy name query."""
        rows = await self.db.fetch_all(BASE_QUERY + ORDER_BY)
        games = [self._map_row(row) for row in rows]

        if name:
            games = [game for game in games if matches_name(name, game.name)]

        return games

    async def get_game_by_id(self, game_id: int) -> PersistedGame:
        rows = await self.db.fetch_all(BASE_QUERY + " where games.id = ?", (game_id,))
        if not rows:
            raise NotFoundError(f"game {game_id} not found")
        return self._map_row(rows[0])

    async def get_game_store_id(self, game_id: int) -> str:
        store_id = await self.db.fetch_value(
            "select store_id from games_store where game_id = ? order by id desc limit 1",
            (game_id,),
        )
        if store_id is None:
            raise NotFoundError(f"game {game_id} has no store id")
        return store_id

    async def update_cover_path(self, game_id: int, cover_id: str, local_path: str) -> None:
        async with self.db.transaction() as conn:
            await conn.execute(
                "UPDATE covers SET local_path = ? WHERE game_id = ? AND cover_id = ?",
                (local_path, game_id, cover_id),
            )

    async def update_artwork_paths(self, game_id: int, paths: Dict[str, str]) -> None:
        """Set local_path on this game's artwork rows, keyed by artwork id."""
        if not paths:
            return
        async with self.db.transaction() as conn:
            await conn.executemany(
                "UPDATE artworks SET local_path = ? WHERE game_id = ? AND artwork_id = ?",
                [(path, game_id, artwork_id) for artwork_id, path in paths.items()],
            )

    @staticmethod
    def _map_row(row) -> PersistedGame:
        """Map one BASE_QUERY row to a PersistedGame.

        The cover is the last linked cover row. is_installed stays None.
        """
        artworks = _parse_asset_pairs(row['artworks'], 'artworks')
        covers = _parse_asset_pairs(row['covers'], 'covers')
        cover_id, cover_path = covers[-1] if covers else (None, None)

        return PersistedGame(
            id=row['id'],
            name=row['name'],
            summary=row['summary'],
            store_id=row['store_id'],
            release_date=row['release_date'],
            genres=_parse_json_array(row['genres'], 'genres'),
            developers=_parse_json_array(row['developers'], 'developers'),
            cover=cover_id,
            cover_path=cover_path,
            artworks=[artwork_id for artwork_id, _ in artworks],
            artwork_paths=[path for _, path in artworks if path],
        )
