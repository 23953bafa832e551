"""Local plan stores: in-memory and JSON-file backed.

Both keep their own deep copies of every plan, so the client's cached
collection and the store never share objects. Alternatives come from a
recipe catalogue filtered by meal type, as the backend does.
"""

import copy
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from mealsync.data_layer.exceptions import NotFoundError, ValidationError
from mealsync.data_layer.models import (
    Day,
    Meal,
    Plan,
    PlanStatus,
    Recipe,
    RecipeRef,
)
from mealsync.ingestion.plan_parser import parse_plans, parse_recipe, plan_to_dict, recipe_to_dict
from mealsync.providers.plan_store import PlanStore

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 10


def _normalize_title(title: str) -> str:
    return " ".join(title.lower().split())


class InMemoryPlanStore(PlanStore):
    """Plan store holding everything in process memory.

    Args:
        plans: Initial plans (copied)
        recipes: Catalogue used for alternatives and apply-by-id
        archive_on_activate: Activating a plan archives the other active
            plans, matching the backend's activate endpoint
    """

    def __init__(
        self,
        plans: Optional[Iterable[Plan]] = None,
        recipes: Optional[Iterable[Recipe]] = None,
        archive_on_activate: bool = True,
    ) -> None:
        self._plans: Dict[str, Plan] = {
            plan.id: copy.deepcopy(plan) for plan in (plans or [])
        }
        self._recipes: List[Recipe] = [copy.deepcopy(r) for r in (recipes or [])]
        self.archive_on_activate = archive_on_activate

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def _plan(self, plan_id: str) -> Plan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise NotFoundError(f"Meal plan '{plan_id}' not found", {"plan_id": plan_id})
        return plan

    def _meal(self, plan_id: str, day_index: int, meal_index: int) -> Meal:
        plan = self._plan(plan_id)
        if not 0 <= day_index < len(plan.days) or not 0 <= meal_index < len(plan.days[day_index].meals):
            raise NotFoundError(
                "Meal not found at specified indices",
                {"plan_id": plan_id, "day_index": day_index, "meal_index": meal_index}
            )
        return plan.days[day_index].meals[meal_index]

    def _catalogue_recipe(self, recipe_id: str) -> Recipe:
        for recipe in self._recipes:
            if recipe.recipe_id == recipe_id:
                return recipe
        raise NotFoundError(f"Recipe '{recipe_id}' not found", {"recipe_id": recipe_id})

    def _changed(self) -> None:
        """Hook called after every successful write."""

    # ------------------------------------------------------------------
    # PlanStore interface
    # ------------------------------------------------------------------

    async def list_plans(self) -> List[Plan]:
        return [copy.deepcopy(plan) for plan in self._plans.values()]

    async def get_plan(self, plan_id: str) -> Plan:
        return copy.deepcopy(self._plan(plan_id))

    async def set_plan_status(self, plan_id: str, status: PlanStatus) -> None:
        plan = self._plan(plan_id)
        if status is PlanStatus.ACTIVE and self.archive_on_activate:
            for other in self._plans.values():
                if other.id != plan_id and other.is_active:
                    other.status = PlanStatus.ARCHIVED
                    logger.info("Archived plan %s on activation of %s", other.id, plan_id)
        plan.status = status
        self._changed()

    async def replace_plan_days(
        self,
        plan_id: str,
        days: List[Day],
        start_date: Optional[date] = None,
    ) -> None:
        plan = self._plan(plan_id)
        plan.days = copy.deepcopy(list(days))
        if start_date is not None:
            plan.start_date = start_date
        self._changed()

    async def set_meal_completion(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        is_completed: bool,
    ) -> None:
        self._meal(plan_id, day_index, meal_index).is_completed = is_completed
        self._changed()

    async def list_alternatives(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        limit: int,
    ) -> List[Recipe]:
        meal = self._meal(plan_id, day_index, meal_index)
        limit = max(1, min(limit, MAX_ALTERNATIVES))
        exclude_ids = {r.recipe_id for r in meal.recipes if r.recipe_id}
        exclude_titles = {_normalize_title(r.name) for r in meal.recipes}
        meal_type = meal.type.lower()

        candidates = []
        for recipe in self._recipes:
            tags = {tag.lower() for tag in recipe.tags}
            if meal_type not in tags:
                continue
            if recipe.recipe_id in exclude_ids or _normalize_title(recipe.name) in exclude_titles:
                continue
            candidates.append(copy.deepcopy(recipe))
        return candidates[:limit]

    async def apply_alternative(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        recipe_ref: RecipeRef,
    ) -> Meal:
        meal = self._meal(plan_id, day_index, meal_index)
        if recipe_ref.recipe is not None:
            recipe = copy.deepcopy(recipe_ref.recipe)
        else:
            recipe = copy.deepcopy(self._catalogue_recipe(recipe_ref.recipe_id))

        meal.recipes = [recipe]
        meal.total_nutrition = copy.deepcopy(recipe.nutrition)
        meal.is_completed = False
        self._changed()
        return copy.deepcopy(meal)


class JsonFilePlanStore(InMemoryPlanStore):
    """In-memory store that loads from and writes back to a JSON file.

    File layout::

        {"mealPlans": [...], "recipes": [...]}

    A bare list of plans is accepted as well. The file is rewritten after
    every successful write.
    """

    def __init__(self, path: Union[str, Path], tz=None, archive_on_activate: bool = True) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Plans file not found: {self.path}")

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {self.path}: {e}", {"path": str(self.path)})

        raw_recipes: List[Any] = data.get("recipes", []) if isinstance(data, dict) else []
        super().__init__(
            plans=parse_plans(data, tz),
            recipes=[parse_recipe(raw) for raw in raw_recipes],
            archive_on_activate=archive_on_activate,
        )

    def _changed(self) -> None:
        data = {
            "mealPlans": [plan_to_dict(plan) for plan in self._plans.values()],
            "recipes": [recipe_to_dict(recipe) for recipe in self._recipes],
        }
        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)
        logger.debug("Wrote %d plans to %s", len(self._plans), self.path)
