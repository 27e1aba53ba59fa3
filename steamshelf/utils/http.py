"""Shared aiohttp session factory."""
import ssl

import aiohttp
import certifi

# Default timeout for API calls (seconds)
DEFAULT_TIMEOUT = 30.0


def create_session(timeout: float = DEFAULT_TIMEOUT, limit_per_host: int = 10) -> aiohttp.ClientSession:
    """Create an HTTP session verifying TLS against certifi's CA bundle.

    Must be called from a running event loop. The caller owns the session
    and is responsible for closing it.
    """
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context, limit_per_host=limit_per_host)
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout),
    )
