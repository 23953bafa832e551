"""Shared builders and store doubles for the test-suite."""

import asyncio
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from mealsync.data_layer.exceptions import NetworkError
from mealsync.data_layer.models import (
    Day,
    Meal,
    NutritionFacts,
    Plan,
    PlanStatus,
    Recipe,
)
from mealsync.providers.memory_store import InMemoryPlanStore


def make_recipe(name: str, recipe_id: Optional[str] = None, calories: float = 400.0,
                tags: Optional[List[str]] = None) -> Recipe:
    return Recipe(
        name=name,
        recipe_id=recipe_id,
        nutrition=NutritionFacts(calories=calories, protein_g=calories / 20),
        tags=tags or [],
    )


def make_meal(meal_id: str, meal_type: str = "lunch", recipe_name: Optional[str] = None,
              is_completed: bool = False) -> Meal:
    return Meal(
        meal_id=meal_id,
        type=meal_type,
        recipes=[make_recipe(recipe_name or f"Recipe {meal_id}")],
        is_completed=is_completed,
    )


def make_plan(plan_id: str, created_ms: int = 0, start_date: Optional[date] = None,
              days: Optional[List[Day]] = None, status: PlanStatus = PlanStatus.ACTIVE,
              title: Optional[str] = None) -> Plan:
    return Plan(
        id=plan_id,
        title=title or f"Plan {plan_id}",
        status=status,
        created_at=datetime.fromtimestamp(created_ms / 1000.0, tz=timezone.utc),
        start_date=start_date,
        days=days or [],
    )


class RecordingStore(InMemoryPlanStore):
    """In-memory store that records calls and can fail or stall on demand."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: List[Dict[str, Any]] = []
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    async def _enter(self, operation: str, **kwargs):
        self.calls.append(dict(kwargs, operation=operation))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    async def set_meal_completion(self, plan_id, day_index, meal_index, is_completed):
        await self._enter("set_meal_completion", plan_id=plan_id, day_index=day_index,
                          meal_index=meal_index, is_completed=is_completed)
        await super().set_meal_completion(plan_id, day_index, meal_index, is_completed)

    async def replace_plan_days(self, plan_id, days, start_date=None):
        await self._enter("replace_plan_days", plan_id=plan_id, days=days, start_date=start_date)
        await super().replace_plan_days(plan_id, days, start_date)

    async def set_plan_status(self, plan_id, status):
        await self._enter("set_plan_status", plan_id=plan_id, status=status)
        await super().set_plan_status(plan_id, status)

    async def list_alternatives(self, plan_id, day_index, meal_index, limit):
        await self._enter("list_alternatives", plan_id=plan_id, day_index=day_index,
                          meal_index=meal_index, limit=limit)
        return await super().list_alternatives(plan_id, day_index, meal_index, limit)

    async def apply_alternative(self, plan_id, day_index, meal_index, recipe_ref):
        await self._enter("apply_alternative", plan_id=plan_id, day_index=day_index,
                          meal_index=meal_index, recipe_ref=recipe_ref)
        return await super().apply_alternative(plan_id, day_index, meal_index, recipe_ref)


@pytest.fixture
def two_plans() -> List[Plan]:
    """Plan A starts 2024-05-01 (created 100ms), plan B has an explicit 2024-05-01 day (created 200ms)."""
    plan_a = make_plan(
        "A",
        created_ms=100,
        start_date=date(2024, 5, 1),
        days=[Day(meals=[make_meal("m1", "breakfast")]), Day(meals=[make_meal("m3", "dinner")])],
    )
    plan_b = make_plan(
        "B",
        created_ms=200,
        days=[Day(date=date(2024, 5, 1), meals=[make_meal("m2", "lunch")])],
    )
    return [plan_a, plan_b]


@pytest.fixture
def catalogue() -> List[Recipe]:
    return [
        make_recipe("Oat Bowl", "r-oat", 350, ["breakfast"]),
        make_recipe("Chicken Salad", "r-salad", 450, ["lunch"]),
        make_recipe("Lentil Soup", "r-soup", 380, ["lunch", "dinner"]),
        make_recipe("Tuna Wrap", "r-wrap", 520, ["lunch"]),
    ]


@pytest.fixture
def network_error() -> NetworkError:
    return NetworkError("connection refused", {"operation": "test"})
