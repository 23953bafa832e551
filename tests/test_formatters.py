"""Unit tests for output formatters."""

import json
from datetime import date

from mealsync.data_layer.models import Day, NutritionFacts
from mealsync.output.formatters import (
    day_label,
    format_alternatives,
    format_timeline_json,
    format_timeline_json_string,
    format_timeline_markdown,
    meal_calories,
    meal_count,
)
from mealsync.planning.timeline import merge

from conftest import make_meal, make_plan, make_recipe


class TestHelpers:
    """Test small display helpers."""

    def test_day_label_weekday(self):
        assert day_label(date(2024, 5, 1), 0) == "Wednesday"

    def test_day_label_undated(self):
        assert day_label(None, 2) == "Day 3"

    def test_meal_calories_prefers_total(self):
        meal = make_meal("m1")
        assert meal_calories(meal) == 400.0
        meal.total_nutrition = NutritionFacts(calories=610)
        assert meal_calories(meal) == 610.0

    def test_meal_calories_without_recipe(self):
        meal = make_meal("m1")
        meal.recipes = []
        assert meal_calories(meal) == 0.0

    def test_meal_count(self, two_plans):
        assert meal_count(two_plans[0]) == 2
        assert meal_count(make_plan("empty", days=[Day(), Day()])) == 0


class TestFormatTimelineMarkdown:
    """Test Markdown timeline output."""

    def test_sections_and_overlap(self, two_plans):
        output = format_timeline_markdown(merge(two_plans), date(2024, 5, 2))
        assert "# Meal Timeline" in output
        assert "Overlapping plans on 1 date(s):** 2024-05-01" in output
        assert "## Wednesday, 2024-05-01" in output
        assert "## Thursday, 2024-05-02 (today)" in output
        assert "**Plan:** Plan B" in output
        assert "- [ ] **Lunch**: Recipe m2 (400 kcal)" in output

    def test_completed_meal_checked(self, two_plans):
        two_plans[1].days[0].meals[0].is_completed = True
        assert "- [x] **Lunch**" in format_timeline_markdown(merge(two_plans))

    def test_empty_timeline(self):
        assert "_No active meal plans._" in format_timeline_markdown(merge([]))


class TestFormatTimelineJson:
    """Test JSON timeline output."""

    def test_structure(self, two_plans):
        data = format_timeline_json(merge(two_plans), date(2024, 5, 2))
        assert data["has_overlap"] is True
        assert data["overlap_dates"] == ["2024-05-01"]
        assert data["today_index"] == 1
        assert data["default_index"] == 1
        first = data["entries"][0]
        assert first["date"] == "2024-05-01"
        assert first["plan_id"] == "B"
        assert first["overlap"] is True
        assert first["meals"][0]["meal_id"] == "m2"
        assert first["meals"][0]["recipe"]["name"] == "Recipe m2"

    def test_today_not_covered(self, two_plans):
        data = format_timeline_json(merge(two_plans), date(2030, 1, 1))
        assert data["today_index"] is None
        assert data["default_index"] == 0

    def test_json_string(self, two_plans):
        parsed = json.loads(format_timeline_json_string(merge(two_plans)))
        assert len(parsed["entries"]) == 2


class TestFormatAlternatives:
    """Test alternatives listing."""

    def test_numbered(self):
        output = format_alternatives([make_recipe("Chili", "es-1", 550), make_recipe("Bowl", None, 480)])
        assert output.splitlines() == [
            "1. **Chili** `es-1` (550 kcal, 27.5g protein)",
            "2. **Bowl** (480 kcal, 24.0g protein)",
        ]

    def test_empty(self):
        assert format_alternatives([]) == "_No alternatives available._"
