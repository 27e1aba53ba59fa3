from .twitch import TwitchAuthClient

__all__ = ['TwitchAuthClient']
