import contextlib
import functools
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

from databases import Database
import openai
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

import config
from db import SqlRepository
from domain import services
from domain.aopenai import TIMEOUT, OpenAIOracle
from domain.cache import RecommendationCache
from domain.entitlements import QuotaGate
from domain.errors import (
    GenerationParseError,
    InvalidInput,
    KitchenError,
    PersistenceError,
    QuotaExceeded,
    RequestDenied,
    Unauthenticated,
    UpstreamUnavailable,
)
from domain.images import UnsplashImages
from domain.mealdb import MealCatalog
from domain.models import Model, Tier, User
from domain.repository import StrapiRepository
import logs


logger = logging.getLogger(__name__)


CONFIG = config.Config()


ERROR_STATUS: dict[type[KitchenError], int] = {
    Unauthenticated: 401,
    InvalidInput: 400,
    RequestDenied: 403,
    QuotaExceeded: 429,
    UpstreamUnavailable: 502,
    GenerationParseError: 502,
    PersistenceError: 500,
}


def current_user(request: Request) -> User | None:
    """Identity as asserted by the auth proxy in front of us."""
    user_id = request.headers.get("x-user-id")
    if not user_id:
        return None
    tier = request.headers.get("x-subscription-tier", "").strip().lower()
    return User(id=user_id, tier=Tier.pro if tier == Tier.pro.value else Tier.free)


async def field(request: Request, name: str) -> str | None:
    """A field from either a JSON or a form body."""
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            data = await request.json()
        except ValueError as e:
            raise InvalidInput("Malformed JSON body.") from e
        value = data.get(name) if isinstance(data, dict) else None
    else:
        async with request.form() as form:
            value = form.get(name)
    return None if value is None else str(value)


def aJSONResponse(route: Callable[[Request], Awaitable[Model | dict[str, Any]]]):
    @functools.wraps(route)
    async def wrapper(request: Request) -> JSONResponse:
        resp = await route(request)
        return JSONResponse(resp.to_dict() if isinstance(resp, Model) else resp)

    return wrapper


async def kitchen_error(request: Request, exc: KitchenError) -> JSONResponse:
    status = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500
    )
    return JSONResponse({"success": False, "error": exc.message}, status_code=status)


@aJSONResponse
async def recommendations(request: Request) -> Model:
    state = request.app.state
    return await services.get_recommendations(
        current_user(request),
        gate=state.gate,
        repository=state.repository,
        cache=state.cache,
        oracle=state.oracle,
    )


@aJSONResponse
async def recipe(request: Request) -> Model:
    state = request.app.state
    return await services.get_or_generate_recipe(
        current_user(request),
        await field(request, "recipeName"),
        repository=state.repository,
        oracle=state.oracle,
        images=state.images,
    )


@aJSONResponse
async def saved_recipes(request: Request) -> Model:
    repository = request.app.state.repository
    match request.method.lower():
        case "get":
            return await services.list_saved_recipes(
                current_user(request), repository=repository
            )
        case "post":
            return await services.save_recipe(
                current_user(request),
                await field(request, "recipeId"),
                repository=repository,
            )
        case _:
            raise ValueError("Unsupported method.")


@aJSONResponse
async def saved_recipe(request: Request) -> Model:
    return await services.remove_recipe(
        current_user(request),
        request.path_params["recipe_id"],
        repository=request.app.state.repository,
    )


@aJSONResponse
async def random_meal(request: Request) -> dict[str, Any]:
    return {"success": True, "recipe": await request.app.state.catalog.random_meal()}


@aJSONResponse
async def categories(request: Request) -> dict[str, Any]:
    return {"success": True, "categories": await request.app.state.catalog.categories()}


@aJSONResponse
async def areas(request: Request) -> dict[str, Any]:
    return {"success": True, "areas": await request.app.state.catalog.areas()}


@aJSONResponse
async def meals_by_category(request: Request) -> dict[str, Any]:
    category = request.path_params["category"]
    meals = await request.app.state.catalog.meals_by_category(category)
    return {"success": True, "meals": meals, "category": category}


@aJSONResponse
async def meals_by_area(request: Request) -> dict[str, Any]:
    area = request.path_params["area"]
    meals = await request.app.state.catalog.meals_by_area(area)
    return {"success": True, "meals": meals, "area": area}


@aJSONResponse
async def meal(request: Request) -> dict[str, Any]:
    found = await request.app.state.catalog.meal(request.path_params["meal_id"])
    return {"success": True, "meal": found}


def create_app(settings: config.Config | None = None, **state: Any) -> Starlette:
    """Build the app. Collaborators passed in `state` replace the configured ones."""
    settings = CONFIG if settings is None else settings

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logs.configure_logging(settings.log_level)
        database: Database | None = None
        owned: list[Any] = []

        if not hasattr(app.state, "repository"):
            if settings.store == config.Store.sql:
                database = Database(settings.db_url)
                await database.connect()
                repository = SqlRepository(database)
                await repository.create_tables()
                app.state.repository = repository
            else:
                app.state.repository = StrapiRepository(
                    base_url=settings.strapi_url,
                    token=settings.strapi_api_token,
                    timeout=settings.http_timeout,
                )
                owned.append(app.state.repository)
        if not hasattr(app.state, "gate"):
            app.state.gate = QuotaGate(
                free_quota=settings.free_quota,
                pro_quota=settings.pro_quota,
                window_seconds=settings.quota_window_seconds,
            )
        if not hasattr(app.state, "cache"):
            app.state.cache = RecommendationCache(
                capacity=settings.cache_capacity,
                single_flight=settings.cache_single_flight,
            )
        if not hasattr(app.state, "oracle"):
            app.state.oracle = OpenAIOracle(
                openai.AsyncClient(
                    api_key=settings.openai_api_key,
                    max_retries=0,
                    timeout=TIMEOUT,
                ),
                model=settings.openai_model,
            )
        if not hasattr(app.state, "images"):
            app.state.images = UnsplashImages(settings.unsplash_access_key)
            owned.append(app.state.images)
        if not hasattr(app.state, "catalog"):
            app.state.catalog = MealCatalog(base_url=settings.mealdb_url)
            owned.append(app.state.catalog)

        logger.info("Serving with %s", type(app.state.repository).__name__)
        yield

        for collaborator in owned:
            await collaborator.close()
        if database is not None:
            await database.disconnect()

    app = Starlette(
        debug=True if settings.env == config.Env.local else False,
        routes=[
            Route("/recommendations", recommendations, methods=["GET"]),
            Route("/recipes", recipe, methods=["POST"]),
            Route("/saved-recipes", saved_recipes, methods=["GET", "POST"]),
            Route("/saved-recipes/{recipe_id}", saved_recipe, methods=["DELETE"]),
            Route("/catalog/random", random_meal),
            Route("/catalog/categories", categories),
            Route("/catalog/categories/{category}", meals_by_category),
            Route("/catalog/areas", areas),
            Route("/catalog/areas/{area}", meals_by_area),
            Route("/catalog/meals/{meal_id}", meal),
        ],
        exception_handlers={KitchenError: kitchen_error},
        lifespan=lifespan,
    )
    for name, value in state.items():
        setattr(app.state, name, value)
    return app


app = create_app()
