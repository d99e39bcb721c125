"""
HTTP client factory for the Steam Web API and steamcommunity.com.

One ``httpx.AsyncClient`` is created at startup and shared by the Steam API
client and the identity resolver, so connections are pooled across the
poll cycle and /add lookups. The owner closes it on shutdown.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


def create_http_client(timeout: float) -> httpx.AsyncClient:
    """
    Build the shared client.

    Configured with:
    - Bounded timeout (a timed-out batch counts as a failed batch)
    - Default User-Agent
    - Follow redirects (vanity profile URLs redirect)
    - Connection pooling
    """
    client = httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": DEFAULT_USER_AGENT},
        limits=httpx.Limits(
            max_connections=20,
            max_keepalive_connections=10,
        ),
    )
    logger.debug(f"Created Steam httpx client (timeout={timeout}s)")
    return client
