"""Unit tests for nutrition synonym mapping."""

import math

from mealsync.data_layer.models import NutritionFacts
from mealsync.ingestion.nutrition_normalizer import (
    NUTRITION_FIELD_SYNONYMS,
    normalize_nutrition,
    normalize_optional_nutrition,
)


class TestSynonymTable:
    """Test the static synonym table."""

    def test_covers_every_nutrition_field(self):
        assert set(NUTRITION_FIELD_SYNONYMS) == set(NutritionFacts.__dataclass_fields__)

    def test_protein_synonyms(self):
        for key in ("protein", "protein_g", "protein_grams", "proteinGrams"):
            assert normalize_nutrition({key: 31}).protein_g == 31.0


class TestNormalizeNutrition:
    """Test normalize_nutrition."""

    def test_canonical_keys(self):
        facts = normalize_nutrition({
            "calories": 520, "protein": 35, "carbs": 48, "fat": 18, "fiber": 6, "sugar": 4
        })
        assert facts == NutritionFacts(520.0, 35.0, 48.0, 18.0, 6.0, 4.0)

    def test_missing_fields_default_to_zero(self):
        assert normalize_nutrition({"calories": 100}) == NutritionFacts(calories=100.0)
        assert normalize_nutrition() == NutritionFacts()
        assert normalize_nutrition(None) == NutritionFacts()

    def test_priority_within_source(self):
        """protein_g is preferred over the bare protein key."""
        assert normalize_nutrition({"protein": 10, "protein_g": 12}).protein_g == 12.0

    def test_sources_layered_first_wins(self):
        """The nutrition sub-object wins over top-level search-hit fields."""
        nested = {"calories": 410}
        hit = {"calories": 999, "protein_grams": 27}
        facts = normalize_nutrition(nested, hit)
        assert facts.calories == 410.0
        assert facts.protein_g == 27.0

    def test_numeric_strings_accepted(self):
        assert normalize_nutrition({"calories": " 250.5 "}).calories == 250.5

    def test_garbage_values_skipped(self):
        """Booleans, blanks, NaN and text fall through to the next candidate."""
        facts = normalize_nutrition(
            {"calories": True, "kcal": "", "energy_kcal": float("nan"), "protein_g": "lots"},
            {"calories": 300, "protein": 20},
        )
        assert facts.calories == 300.0
        assert facts.protein_g == 20.0
        assert not math.isnan(facts.calories)

    def test_non_mapping_sources_ignored(self):
        assert normalize_nutrition(["calories", 5], {"fat": 3}).fat_g == 3.0


class TestNormalizeOptionalNutrition:
    """Test normalize_optional_nutrition."""

    def test_none_without_nutrients(self):
        assert normalize_optional_nutrition({"name": "x"}, None) is None

    def test_present_with_any_nutrient(self):
        facts = normalize_optional_nutrition(None, {"carbohydrates": 40})
        assert facts == NutritionFacts(carbs_g=40.0)
