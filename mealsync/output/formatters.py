"""Formatters for timeline output (JSON and Markdown)."""

import json
from datetime import date
from typing import Any, Dict, List, Optional, Union

from mealsync.data_layer.models import Meal, NutritionFacts, Plan, Recipe
from mealsync.planning.timeline import MergeResult, TimelineEntry


MEAL_TYPE_NAMES = {
    "breakfast": "Breakfast",
    "lunch": "Lunch",
    "dinner": "Dinner",
    "snack": "Snack"
}


def day_label(day: Optional[date], day_index: int) -> str:
    """Weekday name of a resolved date, or "Day N" for an undated day.

    Args:
        day: Resolved calendar date (None when unaddressable)
        day_index: Zero-based position within the plan

    Returns:
        "Wednesday" or "Day 3"
    """
    if day is None:
        return f"Day {day_index + 1}"
    return day.strftime("%A")


def meal_calories(meal: Meal) -> float:
    """Calories of a meal: its stored total, else its current recipe's."""
    if meal.total_nutrition is not None:
        return meal.total_nutrition.calories
    recipe = meal.current_recipe
    return recipe.nutrition.calories if recipe is not None else 0.0


def meal_count(plan: Plan) -> int:
    return sum(len(day.meals) for day in plan.days)


def _nutrition_json(nutrition: NutritionFacts) -> Dict[str, float]:
    return {
        "calories": round(nutrition.calories, 1),
        "protein_g": round(nutrition.protein_g, 1),
        "carbs_g": round(nutrition.carbs_g, 1),
        "fat_g": round(nutrition.fat_g, 1),
        "fiber_g": round(nutrition.fiber_g, 1),
        "sugar_g": round(nutrition.sugar_g, 1)
    }


def format_recipe_json(recipe: Recipe) -> Dict[str, Any]:
    return {
        "recipe_id": recipe.recipe_id,
        "name": recipe.name,
        "description": recipe.description,
        "nutrition": _nutrition_json(recipe.nutrition),
        "tags": list(recipe.tags),
        "prep_time_minutes": recipe.prep_time_minutes,
        "cook_time_minutes": recipe.cook_time_minutes
    }


def format_meal_json(meal: Meal) -> Dict[str, Any]:
    recipe = meal.current_recipe
    return {
        "meal_id": meal.meal_id,
        "type": meal.type,
        "scheduled_time": meal.scheduled_time,
        "is_completed": meal.is_completed,
        "calories": round(meal_calories(meal), 1),
        "recipe": format_recipe_json(recipe) if recipe is not None else None
    }


def _entry_date(entry: TimelineEntry) -> date:
    return date.fromisoformat(entry.date_key)


def format_timeline_markdown(result: MergeResult, today: Union[str, date, None] = None) -> str:
    """Format a merged timeline as Markdown, one section per date.

    Args:
        result: MergeResult from merge()
        today: Marks today's entry when covered

    Returns:
        Formatted Markdown string
    """
    lines = ["# Meal Timeline\n"]
    if not result.entries:
        lines.append("_No active meal plans._")
        return "\n".join(lines) + "\n"

    if result.has_overlap:
        lines.append(
            f"⚠️ **Overlapping plans on {len(result.overlap_dates)} date(s):** "
            + ", ".join(result.overlap_dates) + "\n"
        )

    today_index = result.index_of(today) if today is not None else None
    for index, entry in enumerate(result.entries):
        heading = f"## {day_label(_entry_date(entry), entry.day_index)}, {entry.date_key}"
        if index == today_index:
            heading += " (today)"
        lines.append(heading)
        lines.append(f"**Plan:** {entry.plan_title or entry.plan_id}")
        if entry.overlap:
            lines.append("**Overlap:** another active plan covers this date")
        lines.append("")

        total = 0.0
        for meal in entry.meals:
            recipe = meal.current_recipe
            name = recipe.name if recipe is not None else "(no recipe)"
            mark = "x" if meal.is_completed else " "
            meal_type = MEAL_TYPE_NAMES.get(meal.type, meal.type.capitalize())
            time_str = f" {meal.scheduled_time}" if meal.scheduled_time else ""
            calories = meal_calories(meal)
            total += calories
            lines.append(f"- [{mark}] **{meal_type}**{time_str}: {name} ({calories:.0f} kcal)")
        if not entry.meals:
            lines.append("_No meals._")
        lines.append(f"\n**Total:** {total:.0f} kcal\n")

    return "\n".join(lines)


def format_timeline_json(result: MergeResult, today: Union[str, date, None] = None) -> Dict[str, Any]:
    """Format a merged timeline as JSON (for API usage).

    Args:
        result: MergeResult from merge()
        today: Used for the default entry index

    Returns:
        Dictionary ready for JSON serialization
    """
    entries = []
    for entry in result.entries:
        entries.append({
            "date": entry.date_key,
            "label": day_label(_entry_date(entry), entry.day_index),
            "plan_id": entry.plan_id,
            "plan_title": entry.plan_title,
            "day_index": entry.day_index,
            "overlap": entry.overlap,
            "meals": [format_meal_json(meal) for meal in entry.meals]
        })

    return {
        "entries": entries,
        "has_overlap": result.has_overlap,
        "overlap_dates": list(result.overlap_dates),
        "today_index": result.index_of(today) if today is not None else None,
        "default_index": result.default_index(today)
    }


def format_timeline_json_string(
    result: MergeResult,
    today: Union[str, date, None] = None,
    indent: int = 2
) -> str:
    return json.dumps(format_timeline_json(result, today), indent=indent)


def format_alternatives(recipes: List[Recipe]) -> str:
    """Format alternatives as a numbered Markdown list."""
    if not recipes:
        return "_No alternatives available._"
    lines = []
    for idx, recipe in enumerate(recipes, 1):
        ref = f" `{recipe.recipe_id}`" if recipe.recipe_id else ""
        lines.append(
            f"{idx}. **{recipe.name}**{ref} "
            f"({recipe.nutrition.calories:.0f} kcal, {recipe.nutrition.protein_g:.1f}g protein)"
        )
    return "\n".join(lines)
