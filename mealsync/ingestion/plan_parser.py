"""Decode store documents into plan models and encode them back.

The remote store speaks camelCase JSON (``startDate``, ``mealId``,
``isCompleted``). This module is the only place that knows those names:
everything past it works with the dataclasses in ``data_layer.models``.

Dates are truncated to calendar dates here, at the boundary. A timestamp
carrying an offset is first converted to the configured timezone (if any),
so ``2024-05-01T22:30:00-04:00`` lands on the user's own calendar day.
"""

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional, Set

from mealsync.data_layer.exceptions import ValidationError
from mealsync.data_layer.models import (
    Day,
    Ingredient,
    Meal,
    NutritionFacts,
    Plan,
    PlanStatus,
    Recipe,
)
from mealsync.ingestion.nutrition_normalizer import (
    normalize_nutrition,
    normalize_optional_nutrition,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
DEFAULT_PLAN_TITLE = "Meal Plan"
DEFAULT_RECIPE_NAME = "Untitled recipe"


# --- Dates and timestamps ---


def _parse_iso_datetime(text: str) -> Optional[datetime]:
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_calendar_date(value: Any, tz: Optional[tzinfo] = None) -> Optional[date]:
    """Convert a wire date value into a date-only value.

    Accepts ``YYYY-MM-DD`` strings, ISO timestamps, epoch milliseconds,
    date and datetime objects. Anything else yields None.

    Args:
        value: Raw value from the store
        tz: Timezone whose calendar is used for offset-aware timestamps

    Returns:
        date, or None when the value is absent or not a valid date
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        return value
    elif isinstance(value, (int, float)):
        try:
            moment = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if len(text) == 10:
            try:
                return date.fromisoformat(text)
            except ValueError:
                return None
        moment = _parse_iso_datetime(text)
        if moment is None:
            logger.debug("Ignoring unparsable date %r", value)
            return None
    else:
        return None

    if tz is not None and moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    return moment.date()


def parse_timestamp(value: Any) -> datetime:
    """Convert a wire timestamp to an aware UTC datetime.

    Naive values are taken as UTC. Missing or invalid values map to the
    epoch so plans without ``createdAt`` sort as the oldest.
    """
    if isinstance(value, bool) or value is None:
        return EPOCH
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return EPOCH
    elif isinstance(value, str):
        moment = _parse_iso_datetime(value)
        if moment is None:
            return EPOCH
    else:
        return EPOCH
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# --- Recipes ---


def _first_present(payload: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _coerce_minutes(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        minutes = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return minutes if minutes > 0 else None


def _parse_ingredient(raw: Any) -> Optional[Ingredient]:
    if isinstance(raw, str):
        name = raw.strip()
        return Ingredient(name=name) if name else None
    if not isinstance(raw, dict):
        return None
    name = str(raw.get("name") or "").strip()
    if not name:
        return None
    amount = _first_present(raw, "amount", "quantity")
    unit = _first_present(raw, "unit", "measure")
    return Ingredient(
        name=name,
        amount="" if amount is None else str(amount),
        unit="" if unit is None else str(unit),
        category=str(raw.get("category") or "other").lower(),
    )


def _split_instruction_text(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def _parse_instructions(raw: Any) -> List[str]:
    """Flatten instructions given as a string, list of strings or list of {text}."""
    if isinstance(raw, str):
        return _split_instruction_text(raw)
    steps: List[str] = []
    for step in raw:
        if isinstance(step, str):
            steps.extend(_split_instruction_text(step))
        elif isinstance(step, dict) and isinstance(step.get("text"), str):
            steps.extend(_split_instruction_text(step["text"]))
    return steps


def _list_field(payload: Dict[str, Any], key: str, *, allow_text: bool = False) -> Any:
    """Return payload[key] (or an empty list) after checking it is a list.

    Raises:
        ValidationError: If the field holds anything else
    """
    value = payload.get(key)
    if value is None:
        return []
    if isinstance(value, list) or (allow_text and isinstance(value, str)):
        return value
    raise ValidationError(
        f"Recipe field '{key}' must be a list",
        {"field": key, "value_type": type(value).__name__}
    )


def parse_recipe(payload: Any) -> Recipe:
    """Parse a recipe document (plan recipe, search hit or favourite).

    Raises:
        ValidationError: If payload is not an object
    """
    if not isinstance(payload, dict):
        raise ValidationError("Recipe payload must be an object", {"payload_type": type(payload).__name__})

    nested = payload.get("recipe") if isinstance(payload.get("recipe"), dict) else {}
    name = _first_present(payload, "name", "title") or _first_present(nested, "name", "title")
    recipe_id = _first_present(payload, "externalId", "recipeId", "id")
    tags = _first_present(payload, "tags", "dietary_tags", "diet_tags") or []
    if not isinstance(tags, list):
        raise ValidationError(
            "Recipe field 'tags' must be a list",
            {"field": "tags", "value_type": type(tags).__name__}
        )
    servings = _coerce_minutes(_first_present(payload, "servings", "yield", "serves"))

    return Recipe(
        name=str(name).strip() if name else DEFAULT_RECIPE_NAME,
        description=str(payload.get("description") or ""),
        nutrition=normalize_nutrition(payload.get("nutrition"), payload),
        ingredients=[
            ing for ing in (_parse_ingredient(raw) for raw in _list_field(payload, "ingredients"))
            if ing is not None
        ],
        instructions=_parse_instructions(_list_field(payload, "instructions", allow_text=True)),
        tags=[str(tag) for tag in tags],
        recipe_id=str(recipe_id) if recipe_id is not None else None,
        prep_time_minutes=_coerce_minutes(_first_present(payload, "prepTime", "prep_time_minutes")),
        cook_time_minutes=_coerce_minutes(_first_present(payload, "cookTime", "cook_time_minutes")),
        servings=servings or 1,
    )


def parse_alternative(payload: Any) -> Recipe:
    """Parse one entry of an alternatives listing.

    The store summarises each candidate (``id``, ``title``, ``calories``,
    ``protein_grams`` ...) and attaches the plan-ready recipe under
    ``recipe``. The attached recipe wins; the summary fills gaps.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Alternative payload must be an object", {"payload_type": type(payload).__name__})
    inner = payload.get("recipe")
    if not isinstance(inner, dict):
        return parse_recipe(payload)

    recipe = parse_recipe(inner)
    recipe.nutrition = normalize_nutrition(inner.get("nutrition"), inner, payload)
    if recipe.name == DEFAULT_RECIPE_NAME and _first_present(payload, "title", "name"):
        recipe.name = str(_first_present(payload, "title", "name")).strip()
    if recipe.recipe_id is None and payload.get("id") is not None:
        recipe.recipe_id = str(payload["id"])
    if not recipe.tags and isinstance(payload.get("tags"), list):
        recipe.tags = [str(tag) for tag in payload["tags"]]
    return recipe


# --- Meals, days, plans ---


def parse_meal(payload: Any, day_index: int = 0, meal_index: int = 0) -> Meal:
    """Parse a meal document.

    Meals without an id get a positional id ``meal-<day>-<meal>`` so they can
    still be addressed by delete.

    Raises:
        ValidationError: If payload is not an object or has no meal type
    """
    if not isinstance(payload, dict):
        raise ValidationError(
            "Meal payload must be an object",
            {"day_index": day_index, "meal_index": meal_index}
        )
    meal_type = payload.get("type")
    if not isinstance(meal_type, str) or not meal_type.strip():
        raise ValidationError(
            "Meal is missing its type",
            {"day_index": day_index, "meal_index": meal_index}
        )
    meal_id = _first_present(payload, "mealId", "_id", "id")
    if meal_id is None:
        meal_id = f"meal-{day_index}-{meal_index}"
        logger.debug("Meal without id at day %d meal %d; using %s", day_index, meal_index, meal_id)

    raw_recipes = payload.get("recipes") or []
    if not isinstance(raw_recipes, list):
        raise ValidationError("Meal recipes must be a list", {"meal_id": str(meal_id)})

    scheduled_time = payload.get("scheduledTime")
    return Meal(
        meal_id=str(meal_id),
        type=meal_type.strip(),
        recipes=[parse_recipe(raw) for raw in raw_recipes],
        scheduled_time=str(scheduled_time) if scheduled_time else None,
        is_completed=payload.get("isCompleted") is True,
        total_nutrition=normalize_optional_nutrition(payload.get("totalNutrition"), payload),
        notes=str(payload.get("notes") or ""),
    )


def parse_day(payload: Any, day_index: int, tz: Optional[tzinfo] = None) -> Day:
    """Parse a plan day; meal ids must be unique within the day."""
    if not isinstance(payload, dict):
        raise ValidationError("Day payload must be an object", {"day_index": day_index})
    raw_meals = payload.get("meals") or []
    if not isinstance(raw_meals, list):
        raise ValidationError("Day meals must be a list", {"day_index": day_index})

    meals = [parse_meal(raw, day_index, index) for index, raw in enumerate(raw_meals)]
    seen: Set[str] = set()
    for meal in meals:
        if meal.meal_id in seen:
            raise ValidationError(
                f"Duplicate meal id '{meal.meal_id}' within day {day_index}",
                {"day_index": day_index, "meal_id": meal.meal_id}
            )
        seen.add(meal.meal_id)
    return Day(date=parse_calendar_date(payload.get("date"), tz), meals=meals)


def parse_plan(payload: Any, tz: Optional[tzinfo] = None) -> Plan:
    """Parse a plan document.

    Raises:
        ValidationError: If the plan has no id, an unknown status or
            malformed days
    """
    if not isinstance(payload, dict):
        raise ValidationError("Plan payload must be an object", {"payload_type": type(payload).__name__})
    plan_id = _first_present(payload, "_id", "id")
    if plan_id is None:
        raise ValidationError("Plan is missing its id", {"title": payload.get("title")})

    raw_status = payload.get("status") or PlanStatus.DRAFT.value
    status = PlanStatus.from_string(raw_status)
    if status is None:
        raise ValidationError(
            f"Unknown plan status '{raw_status}'",
            {"plan_id": str(plan_id), "status": raw_status}
        )

    raw_days = payload.get("days") or []
    if not isinstance(raw_days, list):
        raise ValidationError("Plan days must be a list", {"plan_id": str(plan_id)})

    return Plan(
        id=str(plan_id),
        title=str(payload.get("title") or DEFAULT_PLAN_TITLE),
        status=status,
        created_at=parse_timestamp(payload.get("createdAt")),
        start_date=parse_calendar_date(payload.get("startDate"), tz),
        days=[parse_day(raw, index, tz) for index, raw in enumerate(raw_days)],
        description=str(payload.get("description") or ""),
    )


def parse_plans(payload: Any, tz: Optional[tzinfo] = None) -> List[Plan]:
    """Parse a plan listing: a bare list or ``{"mealPlans": [...]}``."""
    if isinstance(payload, dict) and "mealPlans" in payload:
        payload = payload["mealPlans"]
    if not isinstance(payload, list):
        raise ValidationError("Plan listing must be a list", {"payload_type": type(payload).__name__})
    return [parse_plan(raw, tz) for raw in payload]


# --- Encoding ---


def nutrition_to_dict(nutrition: NutritionFacts) -> Dict[str, float]:
    """Encode NutritionFacts with the store's own key names."""
    return {
        "calories": nutrition.calories,
        "protein": nutrition.protein_g,
        "carbs": nutrition.carbs_g,
        "fat": nutrition.fat_g,
        "fiber": nutrition.fiber_g,
        "sugar": nutrition.sugar_g,
    }


def recipe_to_dict(recipe: Recipe) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "name": recipe.name,
        "description": recipe.description,
        "nutrition": nutrition_to_dict(recipe.nutrition),
        "ingredients": [
            {"name": ing.name, "amount": ing.amount, "unit": ing.unit, "category": ing.category}
            for ing in recipe.ingredients
        ],
        "instructions": list(recipe.instructions),
        "tags": list(recipe.tags),
        "servings": recipe.servings,
    }
    if recipe.recipe_id is not None:
        data["externalId"] = recipe.recipe_id
    if recipe.prep_time_minutes is not None:
        data["prepTime"] = recipe.prep_time_minutes
    if recipe.cook_time_minutes is not None:
        data["cookTime"] = recipe.cook_time_minutes
    return data


def meal_to_dict(meal: Meal) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "mealId": meal.meal_id,
        "type": meal.type,
        "isCompleted": meal.is_completed,
        "recipes": [recipe_to_dict(recipe) for recipe in meal.recipes],
    }
    if meal.scheduled_time:
        data["scheduledTime"] = meal.scheduled_time
    if meal.total_nutrition is not None:
        data["totalNutrition"] = nutrition_to_dict(meal.total_nutrition)
    if meal.notes:
        data["notes"] = meal.notes
    return data


def day_to_dict(day: Day) -> Dict[str, Any]:
    data: Dict[str, Any] = {"meals": [meal_to_dict(meal) for meal in day.meals]}
    if day.date is not None:
        data["date"] = day.date.isoformat()
    return data


def plan_to_dict(plan: Plan) -> Dict[str, Any]:
    return {
        "id": plan.id,
        "title": plan.title,
        "description": plan.description,
        "status": plan.status.value,
        "startDate": plan.start_date.isoformat() if plan.start_date else None,
        "createdAt": plan.created_at.isoformat(),
        "days": [day_to_dict(day) for day in plan.days],
    }
