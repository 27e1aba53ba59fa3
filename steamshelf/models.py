"""
Data types passed between the storefront, the metadata catalog, the
library store and the artwork mirror.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class AssetCategory(str, Enum):
    """Image category; the value doubles as the local subdirectory name."""
    COVER = "covers"
    ARTWORK = "artworks"

    @property
    def image_size(self) -> str:
        """IGDB CDN size variant used for this category."""
        return "t_cover_small" if self is AssetCategory.COVER else "t_1080p"


@dataclass
class OwnedGameRef:
    """A game owned on Steam, as listed by GetOwnedGames"""
    external_id: int
    name: str
    playtime_minutes: Optional[int] = None


@dataclass
class Company:
    """An IGDB company (developer or publisher)"""
    igdb_id: int
    name: str


@dataclass
class CatalogGameRecord:
    """Resolved IGDB metadata for one owned game.

    external_id is the Steam app id (as a string) that resolved to this
    record; it is unique within one refresh cycle.
    """
    catalog_id: int
    name: str
    external_id: Optional[str] = None
    summary: Optional[str] = None
    storyline: Optional[str] = None
    release_date: Optional[int] = None  # unix timestamp of first release
    genres: List[str] = field(default_factory=list)
    developers: List[Company] = field(default_factory=list)
    publishers: List[Company] = field(default_factory=list)
    cover_image_id: Optional[str] = None
    artwork_image_ids: List[str] = field(default_factory=list)


@dataclass
class PersistedGame:
    """A game row as read back from the library store.

    is_installed is never stored; it stays None until the caller asks the
    local Steam client.
    """
    id: int
    name: str
    summary: Optional[str] = None
    store_id: Optional[str] = None
    release_date: Optional[int] = None
    genres: List[str] = field(default_factory=list)
    developers: List[str] = field(default_factory=list)
    cover: Optional[str] = None
    cover_path: Optional[str] = None
    artworks: List[str] = field(default_factory=list)
    artwork_paths: List[str] = field(default_factory=list)
    is_installed: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
