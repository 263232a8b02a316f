import contextlib
from datetime import datetime
import logging
from typing import Any, Iterator, Protocol

import httpx
import pydantic

from domain.errors import StoreError
from domain.models import PantryItem, Recipe, SavedRecipe


logger = logging.getLogger(__name__)


class RecipeRepository(Protocol):
    """Durable storage for pantries, recipes and saved recipes.

    Every failure is raised as `StoreError` and carries no partial data.
    """

    async def list_pantry_items(self, user_id: str) -> list[PantryItem]:
        ...

    async def find_recipe_by_title(self, title: str) -> Recipe | None:
        """Case-insensitive title match."""
        ...

    async def create_recipe(self, recipe: Recipe) -> Recipe:
        """Store `recipe`, returning it with its new id."""
        ...

    async def find_saved_recipe(
        self, user_id: str, recipe_id: str
    ) -> SavedRecipe | None:
        ...

    async def create_saved_recipe(
        self, user_id: str, recipe_id: str, saved_at: datetime
    ) -> SavedRecipe:
        ...

    async def delete_saved_recipe(self, saved_recipe_id: str) -> None:
        ...

    async def list_saved_recipes(self, user_id: str) -> list[SavedRecipe]:
        """Newest first. `recipe` is None where the reference is broken."""
        ...


@contextlib.contextmanager
def invalid_payload(what: str) -> Iterator[None]:
    try:
        yield
    except (pydantic.ValidationError, LookupError, TypeError) as e:
        raise StoreError(f"Unexpected {what} payload: {e!r}") from e


class StrapiRepository:
    """`RecipeRepository` over a Strapi REST api."""

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:1337",
        token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 20,
    ) -> None:
        self.http_client = (
            httpx.AsyncClient(
                base_url=f"{base_url.rstrip('/')}/api/",
                headers={"Authorization": f"Bearer {token}"} if token else {},
                timeout=timeout,
            )
            if http_client is None
            else http_client
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self.http_client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e!r}") from e

        if not resp.is_success:
            raise StoreError(f"{method} {path} returned {resp.status_code}: {resp.text}")

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise StoreError(f"{method} {path} returned invalid json") from e

    async def _entries(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        data = await self._request("GET", path, params=params)
        if not isinstance(data, dict):
            raise StoreError(f"GET {path} returned {type(data).__name__}, not an object")
        return data.get("data") or []

    async def list_pantry_items(self, user_id: str) -> list[PantryItem]:
        entries = await self._entries(
            "pantry-items", {"filters[owner][id][$eq]": user_id}
        )
        with invalid_payload("pantry item"):
            return [PantryItem(e["name"]) for e in entries]

    async def find_recipe_by_title(self, title: str) -> Recipe | None:
        entries = await self._entries(
            "recipes", {"filters[title][$eqi]": title, "populate": "*"}
        )
        if not entries:
            return None
        with invalid_payload("recipe"):
            return Recipe.model_validate(entries[0])

    async def create_recipe(self, recipe: Recipe) -> Recipe:
        payload = recipe.to_dict()
        payload.pop("id")
        data = await self._request("POST", "recipes", json={"data": payload})
        with invalid_payload("recipe"):
            return recipe.model_copy(update={"id": str(data["data"]["id"])})

    async def find_saved_recipe(
        self, user_id: str, recipe_id: str
    ) -> SavedRecipe | None:
        entries = await self._entries(
            "saved-recipes",
            {
                "filters[user][id][$eq]": user_id,
                "filters[recipe][id][$eq]": recipe_id,
            },
        )
        if not entries:
            return None
        with invalid_payload("saved recipe"):
            return self._saved_recipe(entries[0], user_id=user_id, recipe_id=recipe_id)

    async def create_saved_recipe(
        self, user_id: str, recipe_id: str, saved_at: datetime
    ) -> SavedRecipe:
        data = await self._request(
            "POST",
            "saved-recipes",
            json={
                "data": {
                    "user": user_id,
                    "recipe": recipe_id,
                    "savedAt": saved_at.isoformat(),
                }
            },
        )
        with invalid_payload("saved recipe"):
            return self._saved_recipe(data["data"], user_id=user_id, recipe_id=recipe_id)

    async def delete_saved_recipe(self, saved_recipe_id: str) -> None:
        await self._request("DELETE", f"saved-recipes/{saved_recipe_id}")

    async def list_saved_recipes(self, user_id: str) -> list[SavedRecipe]:
        entries = await self._entries(
            "saved-recipes",
            {
                "filters[user][id][$eq]": user_id,
                "populate[recipe][populate]": "*",
                "sort": "savedAt:desc",
            },
        )
        saved: list[SavedRecipe] = []
        for entry in entries:
            populated = entry.get("recipe") or {}
            recipe = None
            if populated:
                try:
                    recipe = Recipe.model_validate(populated)
                except pydantic.ValidationError as e:
                    logger.warning("Unreadable recipe on %s: %r", entry.get("id"), e)
            with invalid_payload("saved recipe"):
                saved.append(
                    self._saved_recipe(
                        entry,
                        user_id=user_id,
                        recipe_id=str(populated.get("id") or ""),
                        recipe=recipe,
                    )
                )
        return saved

    @staticmethod
    def _saved_recipe(
        entry: dict[str, Any],
        *,
        user_id: str,
        recipe_id: str | None,
        recipe: Recipe | None = None,
    ) -> SavedRecipe:
        return SavedRecipe(
            id=entry["id"],
            user_id=user_id,
            recipe_id=recipe_id or "",
            saved_at=entry.get("savedAt") or entry["createdAt"],
            recipe=recipe,
        )

    async def close(self) -> None:
        await self.http_client.aclose()
