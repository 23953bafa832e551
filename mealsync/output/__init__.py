"""Output formatting for timelines and alternatives."""

from mealsync.output.formatters import (
    day_label,
    format_alternatives,
    format_meal_json,
    format_recipe_json,
    format_timeline_json,
    format_timeline_json_string,
    format_timeline_markdown,
    meal_calories,
    meal_count
)

__all__ = [
    "day_label",
    "format_alternatives",
    "format_meal_json",
    "format_recipe_json",
    "format_timeline_json",
    "format_timeline_json_string",
    "format_timeline_markdown",
    "meal_calories",
    "meal_count"
]
