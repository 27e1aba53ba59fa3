from .base import Store
from .steam import SteamStore

__all__ = ['Store', 'SteamStore']
