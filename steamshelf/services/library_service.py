"""
LibraryService - Command layer over the library.

Every user-facing operation (refresh, list, show, install, uninstall,
status) goes through this class. build_library_service() wires all
collaborators together once at startup.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from steamshelf.auth.twitch import TwitchAuthClient
from steamshelf.config import Settings
from steamshelf.controllers.sync_progress import SyncProgress
from steamshelf.db import Database, GameRepository
from steamshelf.exceptions import SteamClientError
from steamshelf.metadata.igdb import IgdbClient
from steamshelf.models import PersistedGame
from steamshelf.stores.steam import SteamStore
from steamshelf.utils.http import create_session
from steamshelf.utils.paths import get_assets_path, get_database_path
from steamshelf.utils.steam_client import SteamLocalClient

from .artwork_service import ArtworkService
from .sync_service import SyncService

logger = logging.getLogger(__name__)


class LibraryService:
    """Facade used by the CLI."""

    def __init__(
        self,
        sync_service: SyncService,
        game_repository: GameRepository,
        steam_client: SteamLocalClient,
        database: Optional[Database] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.sync_service = sync_service
        self.game_repository = game_repository
        self.steam_client = steam_client
        self.database = database
        self.session = session

    async def refresh_games(self) -> Dict[str, Any]:
        return await self.sync_service.refresh_games()

    def cancel_refresh(self) -> None:
        self.sync_service.cancel_refresh()

    def get_refresh_status(self) -> Dict[str, Any]:
        return self.sync_service.sync_progress.to_dict()

    async def get_games(self, name: Optional[str] = None) -> List[PersistedGame]:
        """List the library, optionally filtered by a fuzzy name query.

        is_installed is left unset on every entry.
        """
        return await self.game_repository.get_games(name)

    async def get_game(self, game_id: int) -> PersistedGame:
        """One game with is_installed filled in from the local Steam client.

        Raises:
            NotFoundError: if no game has this id
        """
        game = await self.game_repository.get_game_by_id(game_id)
        game.is_installed = bool(game.store_id) and self.steam_client.is_installed(game.store_id)
        return game

    async def install_game(self, game_id: int) -> bool:
        """Hand the install over to Steam. True means the request was dispatched."""
        store_id = await self.game_repository.get_game_store_id(game_id)
        try:
            return self.steam_client.install(store_id)
        except SteamClientError as e:
            logger.error(f"[Steam] Install of game {game_id} failed: {e}")
            return False

    async def uninstall_game(self, game_id: int) -> bool:
        """Hand the uninstall over to Steam. True means the request was dispatched."""
        store_id = await self.game_repository.get_game_store_id(game_id)
        try:
            return self.steam_client.uninstall(store_id)
        except SteamClientError as e:
            logger.error(f"[Steam] Uninstall of game {game_id} failed: {e}")
            return False

    async def close(self) -> None:
        """Release the HTTP session and the database connection."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
        if self.database is not None:
            await self.database.close()


async def build_library_service(settings: Settings) -> LibraryService:
    """Construct every collaborator once and wire them together.

    Must be called from a running event loop. The returned service owns
    the HTTP session and the database; call close() when done.
    """
    database = Database(get_database_path(settings.data_dir))
    await database.connect()

    session = create_session()

    auth_client = TwitchAuthClient(settings.twitch_client_id, settings.twitch_client_secret, session)
    metadata_client = IgdbClient(auth_client, session, settings.twitch_client_id)
    store = SteamStore(settings.steam_api_key, settings.steam_profile_id, session)
    game_repository = GameRepository(database)
    artwork_service = ArtworkService(get_assets_path(settings.data_dir), session)

    sync_service = SyncService(
        store=store,
        metadata_client=metadata_client,
        game_repository=game_repository,
        artwork_service=artwork_service,
        sync_progress=SyncProgress(),
    )

    if not settings.steam_library_path:
        logger.warning("[Steam] No local Steam library found; every game reports as not installed")

    return LibraryService(
        sync_service=sync_service,
        game_repository=game_repository,
        steam_client=SteamLocalClient(settings.steam_library_path),
        database=database,
        session=session,
    )
