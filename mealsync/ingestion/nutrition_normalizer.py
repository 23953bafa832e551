"""Nutrition synonym mapping into the canonical NutritionFacts shape.

Different producers (plan generator, recipe search hits, favourites) report
the same nutrient under different keys: ``protein``, ``protein_g``,
``protein_grams``, ``proteinGrams``. This module maps every known synonym to
one NutritionFacts field so ambiguity never reaches the core model.

DESIGN DECISIONS:
- Static synonym table: canonical field → candidate keys in priority order
- First finite numeric value wins; strings holding numbers are accepted
- Booleans, NaN, infinities and unparsable strings are ignored
- Missing nutrients default to zero
- Several sources can be layered (e.g. a recipe's ``nutrition`` sub-object
  first, then the top-level search hit)
"""

import math
from typing import Any, Dict, Mapping, Optional, Tuple

from mealsync.data_layer.models import NutritionFacts


# ============================================================================
# NUTRITION SYNONYM TABLE
# ============================================================================
#
# Canonical NutritionFacts field → keys seen on the wire, highest priority
# first. The order follows the store's own mapping of search hits, which
# prefers the explicit ``*_g`` keys over bare names.
# ============================================================================

NUTRITION_FIELD_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "calories": ("calories", "kcal", "energy_kcal", "energyKcal", "calories_kcal"),
    "protein_g": ("protein_g", "protein_grams", "proteinGrams", "protein"),
    "carbs_g": (
        "carbs_g", "carbs_grams", "carbsGrams", "carbs",
        "carbohydrates_g", "carbohydrates",
    ),
    "fat_g": ("fat_g", "fat_grams", "fatGrams", "fat", "total_fat_g"),
    "fiber_g": ("fiber_g", "fiber_grams", "fiberGrams", "fiber", "fibre_g", "fibre"),
    "sugar_g": ("sugar_g", "sugar_grams", "sugarGrams", "sugar", "sugars"),
}


def _coerce_number(value: Any) -> Optional[float]:
    """Return value as a finite float, or None if it is not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _lookup(field_name: str, sources: Tuple[Mapping[str, Any], ...]) -> Optional[float]:
    for source in sources:
        for key in NUTRITION_FIELD_SYNONYMS[field_name]:
            if key in source:
                number = _coerce_number(source[key])
                if number is not None:
                    return number
    return None


def normalize_nutrition(*sources: Optional[Mapping[str, Any]]) -> NutritionFacts:
    """Map nutrition synonyms from one or more payloads into NutritionFacts.

    Sources are searched in order; the first usable value for a field wins.
    Non-mapping sources are skipped.

    Args:
        *sources: Raw dictionaries (e.g. ``recipe["nutrition"]``, ``recipe``)

    Returns:
        NutritionFacts with every unknown field set to zero
    """
    usable = tuple(s for s in sources if isinstance(s, Mapping))
    values = {}
    for field_name in NUTRITION_FIELD_SYNONYMS:
        number = _lookup(field_name, usable)
        values[field_name] = number if number is not None else 0.0
    return NutritionFacts(**values)


def normalize_optional_nutrition(*sources: Optional[Mapping[str, Any]]) -> Optional[NutritionFacts]:
    """Like normalize_nutrition, but None when no source carries any nutrient."""
    usable = tuple(s for s in sources if isinstance(s, Mapping))
    if not any(_lookup(field_name, usable) is not None for field_name in NUTRITION_FIELD_SYNONYMS):
        return None
    return normalize_nutrition(*usable)
