from typing import Iterable


DISPLAY_SEPARATOR = ", "
KEY_SEPARATOR = "|"


class NormalizedIngredients:
    """Trimmed, lower-cased and sorted pantry names.

    Sorting makes both forms independent of input order. Duplicates are kept,
    so a pantry listing "onion" twice keys differently from one listing it once.
    """

    def __init__(self, names: Iterable[str]) -> None:
        self.names = sorted(name.strip().lower() for name in names)

    def __repr__(self) -> str:
        return f"<NormalizedIngredients({self.display})>"

    @property
    def display(self) -> str:
        return DISPLAY_SEPARATOR.join(self.names)

    @property
    def key(self) -> str:
        return KEY_SEPARATOR.join(self.names)


def normalize_ingredients(names: Iterable[str]) -> NormalizedIngredients:
    return NormalizedIngredients(names)


def cache_key(user_id: str, ingredients: NormalizedIngredients) -> str:
    return f"{user_id}:{ingredients.key}"
