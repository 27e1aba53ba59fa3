"""Exception types shared by the steamshelf backend.

Everything raised on purpose derives from SteamshelfError so the command
layer can report a failed stage with a single except clause.
"""

from typing import Optional


class SteamshelfError(Exception):
    """Base class for all steamshelf errors."""


class TransportError(SteamshelfError):
    """HTTP/network failure, unexpected status or malformed response body."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class AuthError(SteamshelfError):
    """The OAuth token exchange failed."""


class NotFoundError(SteamshelfError):
    """A single requested entity does not exist."""


class DownloadFailure(SteamshelfError):
    """An image could not be mirrored after all attempts."""


class StoreError(SteamshelfError):
    """A SQLite operation failed (constraint violation, I/O, malformed aggregate)."""


class ConfigError(SteamshelfError):
    """Required settings are missing or invalid."""


class SteamClientError(SteamshelfError):
    """A steam:// URL could not be handed to the OS."""
