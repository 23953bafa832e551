"""Ingestion boundary: decode store payloads into the canonical data model."""

from mealsync.ingestion.nutrition_normalizer import (
    NUTRITION_FIELD_SYNONYMS,
    normalize_nutrition,
    normalize_optional_nutrition,
)
from mealsync.ingestion.plan_parser import (
    parse_plan,
    parse_plans,
    parse_meal,
    parse_recipe,
    parse_calendar_date,
    plan_to_dict,
    day_to_dict,
    meal_to_dict,
    recipe_to_dict,
)

__all__ = [
    "NUTRITION_FIELD_SYNONYMS",
    "normalize_nutrition",
    "normalize_optional_nutrition",
    "parse_plan",
    "parse_plans",
    "parse_meal",
    "parse_recipe",
    "parse_calendar_date",
    "plan_to_dict",
    "day_to_dict",
    "meal_to_dict",
    "recipe_to_dict",
]
