import logging
from typing import Protocol

import httpx


logger = logging.getLogger(__name__)


BASE_URL = "https://api.unsplash.com/"
TIMEOUT = 20


class ImageSearch(Protocol):
    async def search(self, query: str) -> str | None:
        ...


class UnsplashImages:
    """Looks up one landscape photo for a query.

    Every failure mode collapses to `None`: no key, a bad response, a transport
    error, or no results.
    """

    def __init__(
        self,
        access_key: str | None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.access_key = access_key
        self.http_client = (
            httpx.AsyncClient(base_url=BASE_URL, timeout=TIMEOUT)
            if http_client is None
            else http_client
        )

    async def search(self, query: str) -> str | None:
        if not self.access_key:
            logger.warning("No Unsplash access key, skipping image search.")
            return None

        try:
            resp = await self.http_client.get(
                "search/photos",
                params={"query": query, "per_page": 1, "orientation": "landscape"},
                headers={"Authorization": f"Client-ID {self.access_key}"},
            )
        except httpx.HTTPError as e:
            logger.error("Unsplash request failed: %r", e)
            return None

        if not resp.is_success:
            logger.error("Unsplash error %s: %s", resp.status_code, resp.text)
            return None

        try:
            results = resp.json().get("results") or []
            return results[0]["urls"]["regular"] if results else None
        except (ValueError, AttributeError, LookupError, TypeError) as e:
            logger.error("Unexpected Unsplash payload: %r", e)
            return None

    async def close(self) -> None:
        await self.http_client.aclose()
