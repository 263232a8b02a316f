"""Read-through client for TheMealDB. No caching, no retries."""

import logging
from typing import Any

import httpx

from domain.errors import UpstreamUnavailable


logger = logging.getLogger(__name__)


BASE_URL = "https://www.themealdb.com/api/json/v1/1/"
TIMEOUT = 20

type Meal = dict[str, Any]


class MealCatalog:
    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        base_url: str = BASE_URL,
    ) -> None:
        self.http_client = (
            httpx.AsyncClient(base_url=f"{base_url.rstrip('/')}/", timeout=TIMEOUT)
            if http_client is None
            else http_client
        )

    async def _meals(self, path: str, what: str, **params: str) -> list[Meal]:
        try:
            resp = await self.http_client.get(path, params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error fetching %s: %r", what, e)
            raise UpstreamUnavailable(f"Failed to fetch {what}") from e
        return data.get("meals") or []

    async def random_meal(self) -> Meal | None:
        meals = await self._meals("random.php", "recipe of the day")
        return meals[0] if meals else None

    async def categories(self) -> list[Meal]:
        return await self._meals("list.php", "categories", c="list")

    async def areas(self) -> list[Meal]:
        return await self._meals("list.php", "areas", a="list")

    async def meals_by_category(self, category: str) -> list[Meal]:
        return await self._meals("filter.php", "meals by category", c=category)

    async def meals_by_area(self, area: str) -> list[Meal]:
        return await self._meals("filter.php", "meals by area", a=area)

    async def meal(self, meal_id: str) -> Meal | None:
        meals = await self._meals("lookup.php", "meal", i=meal_id)
        return meals[0] if meals else None

    async def close(self) -> None:
        await self.http_client.aclose()
