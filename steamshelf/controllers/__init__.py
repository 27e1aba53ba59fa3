from .sync_progress import SyncProgress

__all__ = ['SyncProgress']
