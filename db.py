import contextlib
from datetime import datetime
import logging
from typing import Iterator
from uuid import uuid4

from databases import Database
from databases.interfaces import Record
import pydantic

from domain.errors import StoreError
from domain.models import PantryItem, Recipe, SavedRecipe


logger = logging.getLogger(__name__)


CREATE_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS PantryItems
    (id VARCHAR(64) PRIMARY KEY, owner VARCHAR(64), name VARCHAR(256))
    """,
    """
    CREATE TABLE IF NOT EXISTS Recipes
    (id VARCHAR(64) PRIMARY KEY, title VARCHAR(256), body TEXT, author VARCHAR(64))
    """,
    """
    CREATE TABLE IF NOT EXISTS SavedRecipes
    (id VARCHAR(64) PRIMARY KEY, user_id VARCHAR(64), recipe_id VARCHAR(64),
    saved_at VARCHAR(64))
    """,
)


CREATE_PANTRY_ITEM = """
INSERT INTO PantryItems(id, owner, name) VALUES (:id, :owner, :name)
"""


LIST_PANTRY_ITEMS = "SELECT name FROM PantryItems WHERE owner = :owner"


CREATE_RECIPE = """
INSERT INTO Recipes(id, title, body, author) VALUES (:id, :title, :body, :author)
"""


FIND_RECIPE_BY_TITLE = "SELECT * FROM Recipes WHERE lower(title) = lower(:title)"


CREATE_SAVED_RECIPE = """
INSERT INTO SavedRecipes(id, user_id, recipe_id, saved_at)
VALUES (:id, :user_id, :recipe_id, :saved_at)
"""


FIND_SAVED_RECIPE = """
SELECT * FROM SavedRecipes WHERE user_id = :user_id AND recipe_id = :recipe_id
"""


DELETE_SAVED_RECIPE = "DELETE FROM SavedRecipes WHERE id = :id"


LIST_SAVED_RECIPES = """
SELECT s.id, s.user_id, s.recipe_id, s.saved_at, r.body
FROM SavedRecipes s LEFT JOIN Recipes r ON r.id = s.recipe_id
WHERE s.user_id = :user_id
ORDER BY s.saved_at DESC
"""


@contextlib.contextmanager
def store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except Exception as e:
        raise StoreError(f"Could not {action}: {e!r}") from e


def recipe_from_record(id: str, body: str) -> Recipe:
    return Recipe.model_validate_json(body).model_copy(update={"id": id})


def saved_recipe_body(record: Record) -> Recipe | None:
    """The joined recipe, or None where it is missing or unreadable."""
    if record["body"] is None:
        return None
    try:
        return recipe_from_record(record["recipe_id"], record["body"])
    except pydantic.ValidationError as e:
        logger.warning("Unreadable recipe on %s: %r", record["id"], e)
        return None


class SqlRepository:
    """`RecipeRepository` over any database `databases` can talk to."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create_tables(self) -> None:
        with store_errors("create tables"):
            for query in CREATE_TABLES:
                await self.db.execute(query=query)  # pyright: ignore[reportUnknownMemberType]

    async def add_pantry_item(self, owner: str, name: str) -> PantryItem:
        with store_errors("add pantry item"):
            await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                CREATE_PANTRY_ITEM,
                values={"id": uuid4().hex, "owner": owner, "name": name},
            )
        return PantryItem(name)

    async def list_pantry_items(self, user_id: str) -> list[PantryItem]:
        with store_errors("list pantry items"):
            result = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                LIST_PANTRY_ITEMS, values={"owner": user_id}
            )
        return [PantryItem(r["name"]) for r in result]

    async def find_recipe_by_title(self, title: str) -> Recipe | None:
        with store_errors("find recipe"):
            result = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
                FIND_RECIPE_BY_TITLE, values={"title": title}
            )
            if result is None:
                return None
            return recipe_from_record(result["id"], result["body"])

    async def create_recipe(self, recipe: Recipe) -> Recipe:
        id = uuid4().hex
        with store_errors("create recipe"):
            await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                CREATE_RECIPE,
                values={
                    "id": id,
                    "title": recipe.title,
                    "body": recipe.model_dump_json(by_alias=True, exclude={"id"}),
                    "author": recipe.author,
                },
            )
        return recipe.model_copy(update={"id": id})

    async def find_saved_recipe(
        self, user_id: str, recipe_id: str
    ) -> SavedRecipe | None:
        with store_errors("find saved recipe"):
            result = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
                FIND_SAVED_RECIPE, values={"user_id": user_id, "recipe_id": recipe_id}
            )
        return None if result is None else self._saved_recipe(result)

    async def create_saved_recipe(
        self, user_id: str, recipe_id: str, saved_at: datetime
    ) -> SavedRecipe:
        saved = SavedRecipe(
            id=uuid4().hex,
            user_id=user_id,
            recipe_id=recipe_id,
            saved_at=saved_at,
        )
        with store_errors("create saved recipe"):
            await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                CREATE_SAVED_RECIPE,
                values={
                    "id": saved.id,
                    "user_id": user_id,
                    "recipe_id": recipe_id,
                    "saved_at": saved_at.isoformat(),
                },
            )
        return saved

    async def delete_saved_recipe(self, saved_recipe_id: str) -> None:
        with store_errors("delete saved recipe"):
            await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
                DELETE_SAVED_RECIPE, values={"id": saved_recipe_id}
            )

    async def list_saved_recipes(self, user_id: str) -> list[SavedRecipe]:
        with store_errors("list saved recipes"):
            result = await self.db.fetch_all(  # pyright: ignore[reportUnknownMemberType]
                LIST_SAVED_RECIPES, values={"user_id": user_id}
            )
        return [
            self._saved_recipe(r, recipe=saved_recipe_body(r)) for r in result
        ]

    @staticmethod
    def _saved_recipe(record: Record, recipe: Recipe | None = None) -> SavedRecipe:
        return SavedRecipe(
            id=record["id"],
            user_id=record["user_id"],
            recipe_id=record["recipe_id"],
            saved_at=record["saved_at"],
            recipe=recipe,
        )
