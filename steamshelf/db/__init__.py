from .database import Database
from .game_repository import GameRepository

__all__ = ['Database', 'GameRepository']
