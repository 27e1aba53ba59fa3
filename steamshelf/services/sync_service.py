"""
SyncService - Drives one end-to-end library refresh.

Responsibilities:
- Fetch the owned-games list from the store
- Resolve it against IGDB in one batch
- Wipe the library tables and the asset cache, then insert every record
- Mirror covers and artworks and back-fill their local paths
- Track refresh progress and handle cancellation between stages
"""

import asyncio
import logging
from typing import Any, Dict, List, Tuple

from steamshelf.exceptions import SteamshelfError
from steamshelf.models import AssetCategory, CatalogGameRecord

logger = logging.getLogger(__name__)


class SyncService:
    """Service for orchestrating a library refresh."""

    def __init__(
        self,
        store,
        metadata_client,
        game_repository,
        artwork_service,
        sync_progress,
    ):
        """Initialize SyncService with all required dependencies.

        Args:
            store: Store connector (SteamStore)
            metadata_client: IgdbClient instance
            game_repository: GameRepository instance
            artwork_service: ArtworkService instance
            sync_progress: SyncProgress tracker instance
        """
        self.store = store
        self.metadata_client = metadata_client
        self.game_repository = game_repository
        self.artwork_service = artwork_service
        self.sync_progress = sync_progress

        # Refresh state
        self._sync_lock = asyncio.Lock()
        self._is_syncing = False
        self._cancel_sync = False

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    def cancel_refresh(self):
        """Request cancellation of the current refresh; honored between stages."""
        if self._is_syncing:
            self._cancel_sync = True
            logger.info("[Sync] Refresh cancellation requested")

    async def refresh_games(self) -> Dict[str, Any]:
        """Rebuild the library from the store and IGDB.

        Returns:
            Dict with success status and counts, or the failing stage and
            its error message
        """
        if self._is_syncing:
            logger.warning("[Sync] Refresh already in progress, ignoring request")
            return {'success': False, 'error': 'refresh already in progress'}

        async with self._sync_lock:
            self._is_syncing = True
            self._cancel_sync = False
            self.sync_progress.reset()
            stage = 'fetching'
            try:
                # === FETCH OWNED GAMES ===
                self.sync_progress.set_phase('fetching', 'Fetching owned games')
                owned = await self.store.get_library()
                if self._cancel_sync:
                    return self._handle_cancellation()

                # === RESOLVE METADATA ===
                stage = 'resolving'
                self.sync_progress.set_phase('resolving', f'Resolving {len(owned)} games')
                records = await self.metadata_client.resolve_batch(game.external_id for game in owned)
                if self._cancel_sync:
                    return self._handle_cancellation()

                # === REPLACE LIBRARY ===
                stage = 'storing'
                self.sync_progress.set_phase('storing', f'Storing {len(records)} games')
                self.sync_progress.total_games = len(records)
                await self.game_repository.clean()
                await self.artwork_service.clear_all()

                stored = await self._store_records(records)
                if self._cancel_sync:
                    return self._handle_cancellation()

                # === MIRROR IMAGES ===
                cover_count, artwork_count = await self._mirror_assets(stored)
                if self._cancel_sync:
                    return self._handle_cancellation()

                self.sync_progress.set_phase('complete', 'Refresh complete')
                logger.info(
                    f"[Sync] Refresh complete: {len(stored)} games, "
                    f"{cover_count} covers, {artwork_count} artworks"
                )
                return {
                    'success': True,
                    'owned_count': len(owned),
                    'resolved_count': len(records),
                    'stored_count': len(stored),
                    'cover_count': cover_count,
                    'artwork_count': artwork_count,
                }

            except (SteamshelfError, OSError) as e:
                message = f"{stage}: {e}"
                logger.error(f"[Sync] Refresh failed during {message}")
                self.sync_progress.set_phase('error')
                self.sync_progress.error = message
                return {'success': False, 'error': message}

            finally:
                self._is_syncing = False

    async def _store_records(self, records: List[CatalogGameRecord]) -> List[Tuple[int, CatalogGameRecord]]:
        """Insert records one at a time; the first failure aborts the refresh.

        Games committed before the failure stay in the library.
        """
        stored = []
        for record in records:
            game_id = await self.game_repository.insert_complete_game(record)
            stored.append((game_id, record))
            self.sync_progress.stored_games = len(stored)
        return stored

    async def _mirror_assets(self, stored: List[Tuple[int, CatalogGameRecord]]) -> Tuple[int, int]:
        """Download covers then artworks and record their local paths.

        Never raises for a single image or record; failures are logged and
        the affected game keeps no local path.

        Returns:
            (games with a cover path, artwork paths recorded)
        """
        cover_ids = list(dict.fromkeys(
            record.cover_image_id for _, record in stored if record.cover_image_id
        ))
        artwork_ids = list(dict.fromkeys(
            artwork_id for _, record in stored for artwork_id in record.artwork_image_ids
        ))

        if self._cancel_sync:
            return 0, 0
        self.sync_progress.set_phase('covers', f'Downloading {len(cover_ids)} covers')
        covers = dict(await self.artwork_service.download_batch(AssetCategory.COVER, cover_ids))

        if self._cancel_sync:
            return 0, 0
        self.sync_progress.set_phase('artworks', f'Downloading {len(artwork_ids)} artworks')
        artworks = dict(await self.artwork_service.download_batch(AssetCategory.ARTWORK, artwork_ids))

        cover_count = 0
        artwork_count = 0
        for game_id, record in stored:
            if record.cover_image_id in covers:
                try:
                    await self.game_repository.update_cover_path(
                        game_id, record.cover_image_id, covers[record.cover_image_id]
                    )
                    cover_count += 1
                except SteamshelfError as e:
                    logger.warning(f"[Sync] Could not record cover path for game {game_id}: {e}")

            matched = {a: artworks[a] for a in record.artwork_image_ids if a in artworks}
            if matched:
                try:
                    await self.game_repository.update_artwork_paths(game_id, matched)
                    artwork_count += len(matched)
                except SteamshelfError as e:
                    logger.warning(f"[Sync] Could not record artwork paths for game {game_id}: {e}")

        return cover_count, artwork_count

    def _handle_cancellation(self) -> Dict[str, Any]:
        """Handle refresh cancellation."""
        logger.warning("[Sync] Refresh cancelled by user")
        self.sync_progress.set_phase('cancelled', 'Refresh cancelled')
        return {
            'success': False,
            'error': 'refresh cancelled',
            'cancelled': True,
        }
