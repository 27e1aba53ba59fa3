"""
Base Store class defining the interface for storefront connectors.

The refresh pipeline only needs the owned-games list; install state and
install/uninstall go through the local client instead.
"""
from abc import ABC, abstractmethod
from typing import List

from steamshelf.models import OwnedGameRef


class Store(ABC):
    """Abstract base class for storefront connectors."""

    @property
    @abstractmethod
    def store_name(self) -> str:
        """Return the store identifier (e.g., 'steam')"""
        pass

    @abstractmethod
    async def get_library(self) -> List[OwnedGameRef]:
        """
        Get the user's owned games from this store.

        Returns:
            List of OwnedGameRef objects.

        Raises:
            TransportError: if the library could not be fetched.
        """
        pass
