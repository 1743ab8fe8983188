"""Client for the upstream OSINT search provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from keygate.core.errors import UpstreamError

logger = logging.getLogger(__name__)

PROVIDER_BRANDING = "lookup made by https://osintdog.com"


def clean_provider_data(data: Any) -> Any:
    """Strip provider branding keys from a response, recursively and in place."""
    if isinstance(data, dict):
        for key in list(data.keys()):
            value = data[key]
            if isinstance(value, (dict, list)):
                clean_provider_data(value)
            if key == "osintdog" or (key == "credit" and value == PROVIDER_BRANDING):
                del data[key]
    elif isinstance(data, list):
        for item in data:
            clean_provider_data(item)
    return data


class SearchProvider:
    """Thin wrapper over a shared ``httpx.AsyncClient``.

    Created once in the app lifespan; ``close()`` on shutdown.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def search(self, search_type: str, query: str) -> Any:
        try:
            response = await self._client.post(
                self.url,
                headers={"X-API-Key": self.api_key, "Content-Type": "application/json"},
                json={"field": [{search_type: query}]},
            )
        except httpx.TimeoutException as e:
            logger.warning("Search provider timed out: %s", e)
            raise UpstreamError("Search provider timed out") from e
        except httpx.HTTPError as e:
            logger.error("Search provider request failed: %s", e)
            raise UpstreamError("Search provider unavailable") from e

        if response.is_error:
            logger.warning("Search provider returned %d", response.status_code)
            raise UpstreamError(
                f"Error from search provider: {response.reason_phrase}",
                upstream_status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Search provider returned malformed JSON") from e
        return clean_provider_data(data)

    async def close(self) -> None:
        await self._client.aclose()
