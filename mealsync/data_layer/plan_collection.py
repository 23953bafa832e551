"""In-memory collection of the client's cached plans.

The collection is the single shared mutable resource of the engine. Only the
mutation controller and the alternatives broker change it; lookups return
None for anything that does not exist so callers can treat a target that
vanished during a refetch as a no-op.
"""

from typing import Dict, Iterable, Iterator, List, Optional

from mealsync.data_layer.models import Day, Meal, Plan


class PlanCollection:
    """Ordered mapping of plan id to the cached Plan."""

    def __init__(self, plans: Optional[Iterable[Plan]] = None):
        self._plans: Dict[str, Plan] = {}
        if plans is not None:
            self.replace_all(plans)

    def __len__(self) -> int:
        return len(self._plans)

    def __iter__(self) -> Iterator[Plan]:
        return iter(list(self._plans.values()))

    def __contains__(self, plan_id: object) -> bool:
        return plan_id in self._plans

    def plans(self) -> List[Plan]:
        """Return the cached plans in insertion order."""
        return list(self._plans.values())

    def replace_all(self, plans: Iterable[Plan]) -> None:
        """Replace the whole collection (used after a full refetch)."""
        self._plans = {plan.id: plan for plan in plans}

    def replace_plan(self, plan: Plan) -> None:
        """Insert or wholesale-replace a single plan."""
        self._plans[plan.id] = plan

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        return self._plans.get(plan_id)

    def get_day(self, plan_id: str, day_index: int) -> Optional[Day]:
        plan = self._plans.get(plan_id)
        if plan is None or not 0 <= day_index < len(plan.days):
            return None
        return plan.days[day_index]

    def get_meal(self, plan_id: str, day_index: int, meal_index: int) -> Optional[Meal]:
        day = self.get_day(plan_id, day_index)
        if day is None or not 0 <= meal_index < len(day.meals):
            return None
        return day.meals[meal_index]

    def find_meal_index(self, plan_id: str, day_index: int, meal_id: str) -> Optional[int]:
        """Return the position of meal_id within the day, or None."""
        day = self.get_day(plan_id, day_index)
        if day is None:
            return None
        for index, meal in enumerate(day.meals):
            if meal.meal_id == meal_id:
                return index
        return None

    def locate_meal(self, plan_id: str, meal_id: str) -> Optional[Meal]:
        """Find a meal by id anywhere in the plan."""
        plan = self._plans.get(plan_id)
        if plan is None:
            return None
        for day in plan.days:
            for meal in day.meals:
                if meal.meal_id == meal_id:
                    return meal
        return None
