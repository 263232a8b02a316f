from typing import Iterator

import httpx
import pytest
from starlette.testclient import TestClient

from conftest import RECIPE, SUGGESTIONS, FakeGate, FakeImages, FakeOracle, FakeRepository, fenced, rate_limited
import config
from domain.cache import RecommendationCache
from domain.entitlements import Decision, DenialReason
from domain.mealdb import MealCatalog
from main import create_app


FREE = {"X-User-Id": "42"}
PRO = {"X-User-Id": "42", "X-Subscription-Tier": "pro"}


def catalog() -> MealCatalog:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("list.php"):
            return httpx.Response(200, json={"meals": [{"strCategory": "Beef"}]})
        return httpx.Response(200, json={"meals": None})

    return MealCatalog(
        httpx.AsyncClient(base_url="https://mealdb.test/", transport=httpx.MockTransport(handler))
    )


def client_for(
    *,
    repository: FakeRepository,
    oracle: FakeOracle,
    gate: FakeGate | None = None,
) -> TestClient:
    app = create_app(
        config.Config(env=config.Env.prod),
        repository=repository,
        gate=FakeGate() if gate is None else gate,
        cache=RecommendationCache(),
        oracle=oracle,
        images=FakeImages("https://img.test/1.jpg"),
        catalog=catalog(),
    )
    return TestClient(app)


@pytest.fixture
def client(repository: FakeRepository) -> Iterator[TestClient]:
    oracle = FakeOracle(fenced(RECIPE))
    with client_for(repository=repository, oracle=oracle) as client:
        yield client


def test_recommendations(repository: FakeRepository) -> None:
    oracle = FakeOracle(fenced(SUGGESTIONS))
    with client_for(repository=repository, oracle=oracle) as client:
        free = client.get("/recommendations", headers=FREE)
        pro = client.get("/recommendations", headers=PRO)

    assert free.status_code == 200
    body = free.json()
    assert body["success"] is True
    assert body["ingredientsUsed"] == "egg, flour, milk"
    assert body["recommendationsLimit"] == 5
    assert [r["matchPercentage"] for r in body["recipes"]] == [100, 95, 90, 80, 75]
    assert pro.json()["recommendationsLimit"] == "unlimited"
    assert oracle.calls == 1


def test_recommendations_unauthenticated(client: TestClient) -> None:
    resp = client.get("/recommendations")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "User not authenticated"}


def test_recommendations_rate_limited(repository: FakeRepository) -> None:
    oracle = FakeOracle(fenced(SUGGESTIONS))
    with client_for(repository=repository, oracle=oracle, gate=rate_limited()) as client:
        resp = client.get("/recommendations", headers=PRO)
    assert resp.status_code == 429
    assert resp.json()["error"] == "Monthly AI recipe limit reached. Please contact support."


def test_recommendations_denied(repository: FakeRepository) -> None:
    oracle = FakeOracle(fenced(SUGGESTIONS))
    gate = FakeGate(Decision.deny(DenialReason.OTHER))
    with client_for(repository=repository, oracle=oracle, gate=gate) as client:
        resp = client.get("/recommendations", headers=FREE)
    assert resp.status_code == 403
    assert resp.json() == {"success": False, "error": "Request denied"}


def test_recommendations_parse_error(repository: FakeRepository) -> None:
    with client_for(repository=repository, oracle=FakeOracle("no")) as client:
        resp = client.get("/recommendations", headers=FREE)
    assert resp.status_code == 502


def test_recipe(client: TestClient) -> None:
    first = client.post("/recipes", json={"recipeName": "  chicken BIRYANI "}, headers=FREE)
    second = client.post("/recipes", data={"recipeName": "Chicken Biryani"}, headers=FREE)

    assert first.status_code == 200
    assert first.json()["fromDatabase"] is False
    assert first.json()["recipe"]["title"] == "Chicken Biryani"
    assert first.json()["recipe"]["imageUrl"] == "https://img.test/1.jpg"
    assert second.json()["fromDatabase"] is True
    assert second.json()["recipeId"] == first.json()["recipeId"]


def test_recipe_needs_a_name(client: TestClient) -> None:
    resp = client.post("/recipes", json={}, headers=FREE)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Recipe name is required"


def test_recipe_persistence_error(client: TestClient, repository: FakeRepository) -> None:
    repository.failing.add("create_recipe")
    resp = client.post("/recipes", json={"recipeName": "soup"}, headers=FREE)
    assert resp.status_code == 500


def test_saved_recipes(client: TestClient) -> None:
    recipe_id = client.post("/recipes", json={"recipeName": "soup"}, headers=FREE).json()[
        "recipeId"
    ]

    saved = client.post("/saved-recipes", json={"recipeId": recipe_id}, headers=FREE)
    again = client.post("/saved-recipes", json={"recipeId": recipe_id}, headers=FREE)
    listed = client.get("/saved-recipes", headers=FREE)
    removed = client.delete(f"/saved-recipes/{recipe_id}", headers=FREE)
    missing = client.delete(f"/saved-recipes/{recipe_id}", headers=FREE)

    assert saved.json()["alreadySaved"] is False
    assert again.json()["alreadySaved"] is True
    assert listed.json()["count"] == 1
    assert listed.json()["recipes"][0]["title"] == "Soup"
    assert removed.json() == {
        "success": True,
        "removed": True,
        "message": "Recipe removed from your collection",
    }
    assert missing.status_code == 200
    assert missing.json()["removed"] is False


def test_saved_recipes_unauthenticated(client: TestClient) -> None:
    assert client.get("/saved-recipes").status_code == 401
    assert client.delete("/saved-recipes/1").status_code == 401


def test_catalog(client: TestClient) -> None:
    categories = client.get("/catalog/categories")
    meal = client.get("/catalog/meals/1")

    assert categories.json() == {"success": True, "categories": [{"strCategory": "Beef"}]}
    assert meal.json() == {"success": True, "meal": None}
