from domain.models import CUISINES, Category


SUGGESTION_COUNT = 5


PANTRY_RECIPES_PROMPT = """
You are a professional chef. Given these available ingredients: {ingredients}

Suggest {count} recipes that can be made primarily with these ingredients.
It's okay if the recipes need 1-2 common pantry staples (salt, pepper, oil, etc.)
that aren't listed.

Return ONLY a valid JSON array (no markdown, no explanations):
[
  {{
    "title": "Recipe name",
    "description": "Brief 1-2 sentence description",
    "matchPercentage": 85,
    "missingIngredients": ["ingredient1", "ingredient2"],
    "category": "{categories}",
    "cuisine": "italian|chinese|mexican|etc",
    "prepTime": 20,
    "cookTime": 30,
    "servings": 4
  }}
]

Rules:
- matchPercentage should be 70-100 (how many listed ingredients are used)
- missingIngredients should be common items or optional additions
- Sort by matchPercentage descending
- Make recipes realistic and delicious
""".strip()


RECIPE_DETAIL_PROMPT = """
You are a professional chef and recipe expert. Generate a detailed recipe for: "{title}"

CRITICAL: The "title" field MUST be EXACTLY: "{title}"
(no changes, no additions like "Classic" or "Easy")

Return ONLY a valid JSON object with this exact structure (no markdown, no explanations):
{{
  "title": "{title}",
  "description": "Brief 2-3 sentence description of the dish",
  "category": "Must be ONE of these EXACT values: {categories}",
  "cuisine": "Must be ONE of these EXACT values: {cuisines}",
  "prepTime": "Time in minutes (number only)",
  "cookTime": "Time in minutes (number only)",
  "servings": "Number of servings (number only)",
  "ingredients": [
    {{
      "item": "ingredient name",
      "amount": "quantity with unit",
      "category": "Protein|Vegetable|Spice|Dairy|Grain|Other"
    }}
  ],
  "instructions": [
    {{
      "step": 1,
      "title": "Brief step title",
      "instruction": "Detailed step instruction",
      "tip": "Optional cooking tip for this step"
    }}
  ],
  "nutrition": {{
    "calories": "calories per serving (NUMBER ONLY or RANGE like 200-350, NO words)",
    "protein": "grams (NUMBER ONLY or RANGE, NO words)",
    "carbs": "grams (NUMBER ONLY or RANGE, NO words)",
    "fat": "grams (NUMBER ONLY or RANGE, NO words)"
  }},
  "tips": [
    "General cooking tip 1",
    "General cooking tip 2",
    "General cooking tip 3"
  ],
  "substitutions": [
    {{
      "original": "ingredient name",
      "alternatives": ["substitute 1", "substitute 2"]
    }}
  ]
}}

IMPORTANT RULES FOR CATEGORY:
- Breakfast items (pancakes, eggs, cereal, etc.) -> "breakfast"
- Main meals for midday (sandwiches, salads, pasta, etc.) -> "lunch"
- Main meals for evening (heavier dishes, roasts, etc.) -> "dinner"
- Light items between meals (chips, crackers, fruit, etc.) -> "snack"
- Sweet treats (cakes, cookies, ice cream, etc.) -> "dessert"

IMPORTANT RULES FOR CUISINE:
- Use lowercase only
- Pick the closest match from the allowed values
- If uncertain, use "other"

IMPORTANT RULES FOR NUTRITION:
- NEVER use words like "approximately", "about", "~", "around"
- ONLY numeric values allowed
- If unsure, return a numeric range (example: 200-350)
- Do NOT include units inside the value

Guidelines:
- Make ingredients realistic and commonly available
- Instructions should be clear and beginner-friendly
- Include 6-10 detailed steps
- Provide practical cooking tips
- Estimate realistic cooking times
- Keep total instructions under 12 steps
""".strip()


def _cuisines() -> str:
    # "other" is the fallback, keep it last.
    return ", ".join(sorted(CUISINES - {"other"}) + ["other"])


class PantryRecipesPrompt:
    def __init__(self, ingredients: str, *, count: int = SUGGESTION_COUNT) -> None:
        self.ingredients = ingredients
        self.count = count

    def __str__(self) -> str:
        return PANTRY_RECIPES_PROMPT.format(
            ingredients=self.ingredients,
            count=self.count,
            categories="|".join(c.value for c in Category),
        )


class RecipeDetailPrompt:
    def __init__(self, title: str) -> None:
        self.title = title

    def __str__(self) -> str:
        return RECIPE_DETAIL_PROMPT.format(
            title=self.title,
            categories=", ".join(c.value for c in Category),
            cuisines=_cuisines(),
        )
