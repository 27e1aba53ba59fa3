from .artwork_service import ArtworkService
from .sync_service import SyncService
from .library_service import LibraryService, build_library_service

__all__ = ['ArtworkService', 'SyncService', 'LibraryService', 'build_library_service']
