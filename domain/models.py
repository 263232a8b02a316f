from datetime import datetime
from enum import Enum
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


FREE_RECOMMENDATIONS_LIMIT = 5

CUISINES = frozenset(
    {
        "italian",
        "chinese",
        "mexican",
        "indian",
        "american",
        "thai",
        "japanese",
        "mediterranean",
        "french",
        "korean",
        "vietnamese",
        "spanish",
        "greek",
        "turkish",
        "moroccan",
        "brazilian",
        "caribbean",
        "middle-eastern",
        "british",
        "german",
        "portuguese",
        "other",
    }
)

# "350", "12.5", "200-350"
NUMERIC_OR_RANGE = re.compile(r"^\d+(\.\d+)?(\s*-\s*\d+(\.\d+)?)?$")


class Tier(Enum):
    free = "free"
    pro = "pro"


class User:
    def __init__(self, *, id: str, tier: Tier = Tier.free) -> None:
        self.id = id
        self.tier = tier

    def __repr__(self) -> str:
        return f"<User(id={self.id}, tier={self.tier.value})>"

    @property
    def is_pro(self) -> bool:
        return self.tier == Tier.pro

    @property
    def recommendations_limit(self) -> Literal["unlimited"] | int:
        return "unlimited" if self.is_pro else FREE_RECOMMENDATIONS_LIMIT


class PantryItem:
    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"<PantryItem(name={self.name})>"


class Category(Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    snack = "snack"
    dessert = "dessert"


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _none_as_empty(value: Any) -> Any:
    # The CMS returns null for unset list fields.
    return [] if value is None else value


class Model(BaseModel):
    """Serialises with camelCase keys, the shape the oracle and the CMS speak."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RecipeSuggestion(Model):
    title: str
    description: str
    match_percentage: int = Field(ge=70, le=100)
    missing_ingredients: list[str] = []
    category: Category
    cuisine: str
    prep_time: int
    cook_time: int
    servings: int

    @field_validator("category", "cuisine", mode="before")
    @classmethod
    def lower_case(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("missing_ingredients", mode="before")
    @classmethod
    def empty_list(cls, value: Any) -> Any:
        return _none_as_empty(value)


class Ingredient(Model):
    item: str
    amount: str
    category: str = "Other"


class Instruction(Model):
    step: int
    title: str
    instruction: str
    tip: str | None = None


class Nutrition(Model):
    calories: str
    protein: str
    carbs: str
    fat: str

    @field_validator("calories", "protein", "carbs", "fat")
    @classmethod
    def numeric_or_range(cls, value: str) -> str:
        value = value.strip()
        if not NUMERIC_OR_RANGE.match(value):
            raise ValueError(f"Expected a number or a range, got {value!r}")
        return value


class Substitution(Model):
    original: str
    alternatives: list[str] = []

    @field_validator("alternatives", mode="before")
    @classmethod
    def empty_list(cls, value: Any) -> Any:
        return _none_as_empty(value)


class GeneratedRecipe(Model):
    title: str
    description: str
    category: Category
    cuisine: str
    prep_time: int
    cook_time: int
    servings: int
    ingredients: list[Ingredient]
    instructions: list[Instruction]
    nutrition: Nutrition
    tips: list[str] = []
    substitutions: list[Substitution] = []

    @field_validator("category", mode="before")
    @classmethod
    def lower_category(cls, value: Any) -> Any:
        return _lower(value)

    @field_validator("cuisine", mode="before")
    @classmethod
    def known_cuisine(cls, value: Any) -> Any:
        value = _lower(value)
        if isinstance(value, str) and value not in CUISINES:
            return "other"
        return value

    @field_validator("tips", "substitutions", mode="before")
    @classmethod
    def empty_list(cls, value: Any) -> Any:
        return _none_as_empty(value)


class Recipe(GeneratedRecipe):
    id: str | None = None
    image_url: str = ""
    is_public: bool = True
    author: str | None = None

    @field_validator("author", mode="before")
    @classmethod
    def author_id(cls, value: Any) -> Any:
        # Populated relations arrive as objects.
        if isinstance(value, dict):
            return value.get("id")
        return value

    @field_validator("image_url", mode="before")
    @classmethod
    def no_image(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("is_public", mode="before")
    @classmethod
    def public_by_default(cls, value: Any) -> Any:
        return True if value is None else value

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, title={self.title})>"


class SavedRecipe(Model):
    id: str
    user_id: str
    recipe_id: str
    saved_at: datetime
    recipe: Recipe | None = None


class RecommendationResult(Model):
    success: bool
    recipes: list[RecipeSuggestion] = []
    ingredients_used: str = ""
    recommendations_limit: Literal["unlimited"] | int | None = None
    message: str = ""


class RecipeResult(Model):
    success: bool = True
    recipe: Recipe
    recipe_id: str | None
    is_saved: bool
    from_database: bool
    is_pro: bool
    recommendations_limit: Literal["unlimited"] | int | None = None
    message: str = ""


class SaveResult(Model):
    success: bool = True
    already_saved: bool
    saved_recipe: SavedRecipe | None = None
    message: str


class RemoveResult(Model):
    success: bool = True
    removed: bool
    message: str


class SavedRecipesResult(Model):
    success: bool = True
    recipes: list[Recipe]
    count: int
