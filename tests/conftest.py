import asyncio
from datetime import datetime
import json
from typing import Any
import uuid

import pytest

from domain.entitlements import Decision, DenialReason
from domain.errors import StoreError
from domain.models import PantryItem, Recipe, SavedRecipe, Tier, User


SUGGESTIONS: list[dict[str, Any]] = [
    {
        "title": title,
        "description": f"A quick {title.lower()}.",
        "matchPercentage": match,
        "missingIngredients": missing,
        "category": category,
        "cuisine": cuisine,
        "prepTime": 10,
        "cookTime": 20,
        "servings": 2,
    }
    for title, match, missing, category, cuisine in (
        ("Crepes", 90, ["butter"], "breakfast", "french"),
        ("Dutch Baby", 100, [], "Breakfast", "German"),
        ("Egg Custard", 75, ["sugar", "vanilla"], "dessert", "british"),
        ("Yorkshire Pudding", 95, ["beef drippings"], "dinner", "british"),
        ("Popovers", 80, ["butter"], "snack", "american"),
    )
]


RECIPE: dict[str, Any] = {
    "title": "Chicken Biryani Deluxe",
    "description": "Fragrant rice layered with spiced chicken.",
    "category": "Dinner",
    "cuisine": "Indian",
    "prepTime": "30",
    "cookTime": 45,
    "servings": "4",
    "ingredients": [
        {"item": "chicken thighs", "amount": "500 g", "category": "Protein"},
        {"item": "basmati rice", "amount": "2 cups", "category": "Grain"},
    ],
    "instructions": [
        {
            "step": 1,
            "title": "Marinate",
            "instruction": "Coat the chicken in yoghurt and spices.",
            "tip": "Overnight is best.",
        },
        {"step": 2, "title": "Layer", "instruction": "Layer rice over chicken."},
    ],
    "nutrition": {"calories": "550-650", "protein": 35, "carbs": "60", "fat": "18"},
    "tips": ["Soak the rice for 30 minutes."],
    "substitutions": [{"original": "chicken thighs", "alternatives": ["lamb"]}],
}


def fenced(payload: Any) -> str:
    return f"```json\n{json.dumps(payload)}\n```"


class FakeOracle:
    def __init__(self, *replies: str, error: Exception | None = None) -> None:
        self.replies = list(replies)
        self.error = error
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]


class FakeImages:
    def __init__(self, url: str | None = None, error: Exception | None = None) -> None:
        self.url = url
        self.error = error
        self.queries: list[str] = []

    async def search(self, query: str) -> str | None:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.url


class FakeGate:
    def __init__(self, decision: Decision | None = None) -> None:
        self.decision = Decision.allow() if decision is None else decision
        self.checks: list[tuple[str, int, Tier]] = []

    async def check(self, user_id: str, requested: int, tier: Tier) -> Decision:
        self.checks.append((user_id, requested, tier))
        return self.decision


def rate_limited() -> FakeGate:
    return FakeGate(Decision.deny(DenialReason.RATE_LIMIT))


class FakeRepository:
    """In-memory `RecipeRepository`. Methods named in `failing` raise `StoreError`."""

    def __init__(self, pantry: dict[str, list[str]] | None = None) -> None:
        self.pantry = {} if pantry is None else pantry
        self.recipes: list[Recipe] = []
        self.saved: list[SavedRecipe] = []
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failing:
            raise StoreError(f"{name} failed")

    async def list_pantry_items(self, user_id: str) -> list[PantryItem]:
        self._call("list_pantry_items")
        return [PantryItem(n) for n in self.pantry.get(user_id, [])]

    async def find_recipe_by_title(self, title: str) -> Recipe | None:
        self._call("find_recipe_by_title")
        return next(
            (r for r in self.recipes if r.title.lower() == title.lower()), None
        )

    async def create_recipe(self, recipe: Recipe) -> Recipe:
        self._call("create_recipe")
        stored = recipe.model_copy(update={"id": uuid.uuid4().hex})
        self.recipes.append(stored)
        return stored

    async def find_saved_recipe(
        self, user_id: str, recipe_id: str
    ) -> SavedRecipe | None:
        self._call("find_saved_recipe")
        return next(
            (
                s
                for s in self.saved
                if s.user_id == user_id and s.recipe_id == recipe_id
            ),
            None,
        )

    async def create_saved_recipe(
        self, user_id: str, recipe_id: str, saved_at: datetime
    ) -> SavedRecipe:
        self._call("create_saved_recipe")
        saved = SavedRecipe(
            id=uuid.uuid4().hex,
            user_id=user_id,
            recipe_id=recipe_id,
            saved_at=saved_at,
        )
        self.saved.append(saved)
        return saved

    async def delete_saved_recipe(self, saved_recipe_id: str) -> None:
        self._call("delete_saved_recipe")
        self.saved = [s for s in self.saved if s.id != saved_recipe_id]

    async def list_saved_recipes(self, user_id: str) -> list[SavedRecipe]:
        self._call("list_saved_recipes")
        by_id = {r.id: r for r in self.recipes}
        saved = [
            s.model_copy(update={"recipe": by_id.get(s.recipe_id)})
            for s in self.saved
            if s.user_id == user_id
        ]
        return sorted(saved, key=lambda s: s.saved_at, reverse=True)


@pytest.fixture
def user() -> User:
    return User(id="42")


@pytest.fixture
def pro_user() -> User:
    return User(id="42", tier=Tier.pro)


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository(pantry={"42": ["milk", "Egg", " flour "]})
