"""
Rainwatch - HTTP helpers

Thin wrapper over httpx that maps transport failures and non-200 responses
onto ProviderError. Callers may inject a shared AsyncClient; otherwise a
short-lived client is opened per request.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from rainwatch.core.exceptions import ProviderError
from rainwatch.settings import settings

logger = logging.getLogger(__name__)


async def http_get(
    url: str,
    params: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    client: Optional[httpx.AsyncClient] = None,
    timeout: Optional[float] = None,
) -> httpx.Response:
    """GET ``url`` and return the response, raising ProviderError unless it is a 200."""
    host = httpx.URL(url).host
    try:
        if client is not None:
            response = await client.get(url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=timeout or settings.OPEN_METEO["timeout"]) as session:
                response = await session.get(url, params=params, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"[HTTP] GET {host} failed: {e}")
        raise ProviderError(f"could not reach {host} ({e.__class__.__name__})") from e

    if response.status_code != 200:
        logger.error(f"[HTTP] GET {host} returned {response.status_code}")
        raise ProviderError(f"{host} returned HTTP {response.status_code}")
    return response


def decode_json(response: httpx.Response) -> Any:
    """Decode a JSON body, mapping malformed payloads onto ProviderError."""
    try:
        return response.json()
    except ValueError as e:
        raise ProviderError(f"{response.url.host} returned a malformed response") from e
