from .igdb import IgdbClient, TokenState

__all__ = ['IgdbClient', 'TokenState']
