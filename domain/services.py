"""Functionality behind the routes."""

from datetime import datetime, timezone
import functools
import logging
from typing import Any, Awaitable, Callable

import pydantic

from domain.aopenai import Oracle, parse_json_reply
from domain.cache import RecommendationCache
from domain.entitlements import EntitlementGate
from domain.errors import (
    GenerationParseError,
    InvalidInput,
    KitchenError,
    PersistenceError,
    QuotaExceeded,
    RequestDenied,
    StoreError,
    Unauthenticated,
    UpstreamUnavailable,
)
from domain.images import ImageSearch
from domain.ingredients import cache_key, normalize_ingredients
from domain.models import (
    GeneratedRecipe,
    Recipe,
    RecipeResult,
    RecipeSuggestion,
    RecommendationResult,
    RemoveResult,
    SavedRecipesResult,
    SaveResult,
    User,
)
from domain.prompts import PantryRecipesPrompt, RecipeDetailPrompt
from domain.repository import RecipeRepository


logger = logging.getLogger(__name__)


EMPTY_PANTRY = "Your pantry is empty. Add ingredients first!"
SUGGESTIONS_ERROR = "Failed to generate recipe suggestions. Please try again."
RECIPE_ERROR = "Failed to generate recipe. Please try again."


SUGGESTIONS = pydantic.TypeAdapter(list[RecipeSuggestion])


def logs_errors[**P, T](
    fn: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await fn(*args, **kwargs)
        except KitchenError as e:
            user = args[0] if args else None
            logger.error("%s failed for %r: %s", fn.__name__, user, e.message)
            raise

    return wrapper


def require_user(user: User | None) -> User:
    if user is None:
        raise Unauthenticated()
    return user


def require_recipe_id(recipe_id: Any) -> str:
    if recipe_id is None or not str(recipe_id).strip():
        raise InvalidInput("Recipe ID is required")
    return str(recipe_id).strip()


def normalize_title(name: str) -> str:
    """Capitalise each word, so "  chicken BIRYANI " is "Chicken Biryani"."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split())


def parse_suggestions(text: str) -> list[RecipeSuggestion]:
    data = parse_json_reply(text, error=SUGGESTIONS_ERROR)
    try:
        suggestions = SUGGESTIONS.validate_python(data)
    except pydantic.ValidationError as e:
        logger.error("Suggestions have the wrong shape: %s", e)
        raise GenerationParseError(SUGGESTIONS_ERROR) from e
    return sorted(suggestions, key=lambda s: s.match_percentage, reverse=True)


def parse_recipe(text: str, *, title: str) -> GeneratedRecipe:
    data = parse_json_reply(text, error=RECIPE_ERROR)
    if not isinstance(data, dict):
        logger.error("Expected a recipe object, got: %s", text)
        raise GenerationParseError(RECIPE_ERROR)

    # The model is asked to echo the title, but ours is authoritative.
    data["title"] = title
    try:
        return GeneratedRecipe.model_validate(data)
    except pydantic.ValidationError as e:
        logger.error("Recipe has the wrong shape: %s", e)
        raise GenerationParseError(RECIPE_ERROR) from e


@logs_errors
async def get_recommendations(
    user: User | None,
    *,
    gate: EntitlementGate,
    repository: RecipeRepository,
    cache: RecommendationCache,
    oracle: Oracle,
) -> RecommendationResult:
    user = require_user(user)

    decision = await gate.check(user.id, 1, user.tier)
    if not decision.allowed:
        if decision.is_rate_limit:
            raise QuotaExceeded.for_tier(is_pro=user.is_pro)
        raise RequestDenied()

    try:
        pantry = await repository.list_pantry_items(user.id)
    except StoreError as e:
        logger.error("Pantry fetch failed: %r", e)
        raise UpstreamUnavailable("Failed to fetch pantry items") from e

    if not pantry:
        return RecommendationResult(success=False, message=EMPTY_PANTRY)

    ingredients = normalize_ingredients(item.name for item in pantry)
    key = cache_key(user.id, ingredients)
    logger.info("Finding recipes for ingredients: %s", ingredients.display)

    async with cache.filling(key):
        cached = cache.get(key)
        if cached is not None:
            logger.info("Returning cached recipes, ingredients unchanged.")
            # The limit follows the caller's tier now, not the tier at fill time.
            return cached.model_copy(
                update={
                    "ingredients_used": ingredients.display,
                    "recommendations_limit": user.recommendations_limit,
                }
            )

        text = await oracle.complete(str(PantryRecipesPrompt(ingredients.display)))
        suggestions = parse_suggestions(text)

        result = RecommendationResult(
            success=True,
            recipes=suggestions,
            ingredients_used=ingredients.display,
            recommendations_limit=user.recommendations_limit,
            message=f"Found {len(suggestions)} recipes you can make!",
        )
        cache.set(key, result)
        return result


async def is_saved(repository: RecipeRepository, user: User, recipe_id: str) -> bool:
    try:
        return await repository.find_saved_recipe(user.id, recipe_id) is not None
    except StoreError as e:
        logger.warning("Saved state unknown for %s: %r", recipe_id, e)
        return False


async def find_image(images: ImageSearch, title: str) -> str:
    try:
        return await images.search(title) or ""
    except Exception as e:
        logger.warning("Image search failed for %s: %r", title, e)
        return ""


@logs_errors
async def get_or_generate_recipe(
    user: User | None,
    recipe_name: str | None,
    *,
    repository: RecipeRepository,
    oracle: Oracle,
    images: ImageSearch,
) -> RecipeResult:
    user = require_user(user)
    if not recipe_name or not recipe_name.strip():
        raise InvalidInput("Recipe name is required")

    title = normalize_title(recipe_name)

    try:
        existing = await repository.find_recipe_by_title(title)
    except StoreError as e:
        # Lenient read: an unreachable store counts as a miss.
        logger.warning("Recipe lookup failed, generating instead: %r", e)
        existing = None

    if existing is not None:
        logger.info("Recipe found in database: %s", existing.id)
        recipe_id = existing.id or ""
        return RecipeResult(
            recipe=existing,
            recipe_id=recipe_id,
            is_saved=await is_saved(repository, user, recipe_id),
            from_database=True,
            is_pro=user.is_pro,
            message="Recipe loaded from database",
        )

    text = await oracle.complete(str(RecipeDetailPrompt(title)))
    generated = parse_recipe(text, title=title)
    image_url = await find_image(images, title)

    recipe = Recipe.model_validate(
        {
            **generated.model_dump(),
            "image_url": image_url,
            "is_public": True,
            "author": user.id,
        }
    )
    try:
        stored = await repository.create_recipe(recipe)
    except StoreError as e:
        logger.error("Failed to save recipe: %r", e)
        raise PersistenceError("Failed to save recipe to database") from e

    logger.info("Recipe saved to database: %s", stored.id)
    return RecipeResult(
        recipe=stored,
        recipe_id=stored.id,
        is_saved=False,
        from_database=False,
        is_pro=user.is_pro,
        recommendations_limit=user.recommendations_limit,
        message="Recipe generated and saved successfully!",
    )


@logs_errors
async def save_recipe(
    user: User | None,
    recipe_id: str | None,
    *,
    repository: RecipeRepository,
) -> SaveResult:
    user = require_user(user)
    recipe_id = require_recipe_id(recipe_id)

    try:
        existing = await repository.find_saved_recipe(user.id, recipe_id)
    except StoreError as e:
        logger.warning("Could not check saved state, saving anyway: %r", e)
        existing = None

    if existing is not None:
        return SaveResult(
            already_saved=True,
            message="Recipe is already in your collection",
        )

    try:
        saved = await repository.create_saved_recipe(
            user.id, recipe_id, datetime.now(timezone.utc)
        )
    except StoreError as e:
        logger.error("Failed to save recipe: %r", e)
        raise PersistenceError("Failed to save recipe to collection") from e

    logger.info("Recipe saved to user collection: %s", saved.id)
    return SaveResult(
        already_saved=False,
        saved_recipe=saved,
        message="Recipe saved to your collection!",
    )


@logs_errors
async def remove_recipe(
    user: User | None,
    recipe_id: str | None,
    *,
    repository: RecipeRepository,
) -> RemoveResult:
    user = require_user(user)
    recipe_id = require_recipe_id(recipe_id)

    try:
        existing = await repository.find_saved_recipe(user.id, recipe_id)
    except StoreError as e:
        raise UpstreamUnavailable("Failed to find saved recipe") from e

    if existing is None:
        return RemoveResult(removed=False, message="Recipe was not in your collection")

    try:
        await repository.delete_saved_recipe(existing.id)
    except StoreError as e:
        raise PersistenceError("Failed to remove recipe from collection") from e

    logger.info("Recipe removed from user collection: %s", existing.id)
    return RemoveResult(removed=True, message="Recipe removed from your collection")


@logs_errors
async def list_saved_recipes(
    user: User | None,
    *,
    repository: RecipeRepository,
) -> SavedRecipesResult:
    user = require_user(user)

    try:
        saved = await repository.list_saved_recipes(user.id)
    except StoreError as e:
        raise UpstreamUnavailable("Failed to fetch saved recipes") from e

    recipes = [s.recipe for s in saved if s.recipe is not None]
    return SavedRecipesResult(recipes=recipes, count=len(recipes))
