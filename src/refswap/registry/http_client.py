"""Shared async HTTP client utilities for NuGet registries.

A run opens one ``httpx.AsyncClient`` through ``create_client`` and hands
it to every HTTP registry, so service-index, search and flat-container
requests to the same feed reuse pooled connections. ``fetch_json`` falls
back to a short-lived client when none is given.

Failures are logged and surfaced as an empty result; callers decide
whether an empty result is an error.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from refswap import __version__

logger = logging.getLogger(__name__)

# Timeout for all registry HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = f"refswap/{__version__}"

# Connections kept open per run; documents are converted concurrently.
MAX_CONNECTIONS: int = 10


def create_client(timeout: float = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
    """Create the client shared by all HTTP registries of one run.

    The caller owns the client and must close it, typically with
    ``async with create_client() as client:``.
    """
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
        limits=httpx.Limits(max_connections=MAX_CONNECTIONS),
    )


async def fetch_json(
    url: str,
    *,
    params: dict[str, str] | None = None,
    client: httpx.AsyncClient | None = None,
) -> dict[str, Any] | list[Any]:
    """GET a URL and parse the response as JSON.

    Args:
        url: The URL to fetch.
        params: Optional query parameters.
        client: Shared client; a temporary one is opened when omitted.

    Returns:
        Parsed JSON response (dict or list). Empty dict on any error.
    """
    try:
        if client is not None:
            return await _get_json(client, url, params)
        async with create_client() as own_client:
            return await _get_json(own_client, url, params)
    except httpx.TimeoutException:
        logger.warning("Timeout fetching %s", url)
    except httpx.HTTPStatusError as exc:
        logger.warning("HTTP %d from %s", exc.response.status_code, url)
    except (httpx.RequestError, ValueError) as exc:
        logger.warning("Request error for %s: %s", url, exc)
    return {}


async def _get_json(
    client: httpx.AsyncClient, url: str, params: dict[str, str] | None
) -> dict[str, Any] | list[Any]:
    resp = await client.get(url, params=params)
    resp.raise_for_status()
    return resp.json()
