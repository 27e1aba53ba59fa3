"""
ArtworkService - Mirrors IGDB cover and artwork images to local disk.

Responsibilities:
- Download a batch of images with at most 5 transfers in flight
- Retry each image up to 3 times with exponential backoff (1s, 2s)
- Write through a .tmp sibling and rename, so a final {image_id}.jpg is never partial
- Skip images already on disk
- Wipe the whole cache at the start of a refresh
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

import aiohttp

from steamshelf.exceptions import DownloadFailure
from steamshelf.models import AssetCategory

logger = logging.getLogger(__name__)

IGDB_IMAGE_BASE = "https://images.igdb.com/igdb/image/upload"

# Concurrent downloads per batch
MAX_CONCURRENT_DOWNLOADS = 5

# Attempts per image before it is dropped
MAX_ATTEMPTS = 3

# Delay before retry n is BACKOFF_BASE ** (n - 1) seconds
BACKOFF_BASE = 2

CHUNK_SIZE = 64 * 1024


def image_url(category: AssetCategory, image_id: str) -> str:
    return f"{IGDB_IMAGE_BASE}/{category.image_size}/{image_id}.jpg"


async def _backoff(delay: float) -> None:
    await asyncio.sleep(delay)


class ArtworkService:
    """Service for mirroring catalog images into the local asset cache."""

    def __init__(self, assets_dir: Path, session: aiohttp.ClientSession,
                 max_concurrency: int = MAX_CONCURRENT_DOWNLOADS,
                 max_attempts: int = MAX_ATTEMPTS):
        """Initialize ArtworkService.

        Args:
            assets_dir: Root of the asset cache; holds covers/ and artworks/
            session: aiohttp session used for image downloads
            max_concurrency: Maximum simultaneous downloads per batch
            max_attempts: Download attempts per image
        """
        self.assets_dir = Path(assets_dir)
        self.session = session
        self.max_concurrency = max_concurrency
        self.max_attempts = max_attempts

        self._ensure_dirs()

    def _ensure_dirs(self) -> None:
        for category in AssetCategory:
            (self.assets_dir / category.value).mkdir(parents=True, exist_ok=True)

    def get_local_path(self, category: AssetCategory, image_id: str) -> Path:
        """Deterministic cache location of an image."""
        return self.assets_dir / category.value / f"{image_id}.jpg"

    async def download_batch(self, category: AssetCategory, image_ids: List[str]) -> List[Tuple[str, str]]:
        """Make sure every image in image_ids is available locally.

        Args:
            category: AssetCategory.COVER or AssetCategory.ARTWORK
            image_ids: IGDB image ids (duplicates are downloaded once)

        Returns:
            (image_id, local_path) for every image now on disk, in no
            particular order. Images that failed all attempts are absent.
        """
        unique_ids = list(dict.fromkeys(image_ids))
        if not unique_ids:
            return []

        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(
            *(self._download_one(category, image_id, semaphore) for image_id in unique_ids)
        )

        downloaded = [result for result in results if result is not None]
        logger.info(f"[Artwork] {category.value}: {len(downloaded)}/{len(unique_ids)} available locally")
        return downloaded

    async def _download_one(self, category: AssetCategory, image_id: str,
                            semaphore: asyncio.Semaphore) -> Optional[Tuple[str, str]]:
        local_path = self.get_local_path(category, image_id)

        if local_path.exists():
            logger.debug(f"[Artwork] {category.value}/{image_id} already cached")
            return image_id, str(local_path)

        async with semaphore:
            try:
                await self._download_with_retry(image_url(category, image_id), local_path)
            except DownloadFailure as e:
                logger.warning(f"[Artwork] Dropping {category.value}/{image_id}: {e}")
                return None

        return image_id, str(local_path)

    async def _download_with_retry(self, url: str, local_path: Path) -> None:
        tmp_path = local_path.with_suffix('.tmp')

        for attempt in range(self.max_attempts):
            try:
                await self._try_download(url, tmp_path)
                os.replace(tmp_path, local_path)
                return
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError, DownloadFailure) as e:
                self._remove_tmp(tmp_path)

                if attempt < self.max_attempts - 1:
                    delay = BACKOFF_BASE ** attempt
                    logger.debug(f"[Artwork] Attempt {attempt + 1} for {url} failed ({e}), retrying in {delay}s")
                    await _backoff(delay)
                else:
                    logger.debug(f"[Artwork] Attempt {attempt + 1} for {url} failed ({e})")

        raise DownloadFailure(f"failed to download {url} after {self.max_attempts} attempts")

    async def _try_download(self, url: str, tmp_path: Path) -> None:
        async with self.session.get(url) as response:
            if response.status != 200:
                raise DownloadFailure(f"HTTP {response.status}")

            with open(tmp_path, 'wb') as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    f.write(chunk)
                f.flush()
                os.fsync(f.fileno())

    @staticmethod
    def _remove_tmp(tmp_path: Path) -> None:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"[Artwork] Could not remove {tmp_path}: {e}")

    async def clear_all(self) -> None:
        """Delete the whole asset cache and recreate the empty category folders."""
        if self.assets_dir.exists():
            shutil.rmtree(self.assets_dir)
        self._ensure_dirs()
        logger.info(f"[Artwork] Cleared asset cache at {self.assets_dir}")
