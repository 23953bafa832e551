"""Abstract base class for the remote plan store.

The mutation controller and the alternatives broker depend ONLY on this
interface. Concrete implementations talk to the REST backend, keep plans in
memory, or persist them to a JSON file without changing downstream logic.

Every method is a coroutine. Implementations raise:
    NotFoundError   - the plan, day or meal does not exist
    NetworkError    - transport failure, timeout or unusable status
    ValidationError - the store answered with an undecodable payload
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from mealsync.data_layer.models import Day, Meal, Plan, PlanStatus, Recipe, RecipeRef


class PlanStore(ABC):
    """Abstraction over the authoritative plan storage."""

    @abstractmethod
    async def list_plans(self) -> List[Plan]:
        """Return every plan visible to the current user."""
        ...

    @abstractmethod
    async def get_plan(self, plan_id: str) -> Plan:
        ...

    @abstractmethod
    async def set_plan_status(self, plan_id: str, status: PlanStatus) -> None:
        """Persist a status change.

        Activating a plan may archive other active plans on the store side;
        the client learns about that on the next reconcile.
        """
        ...

    @abstractmethod
    async def replace_plan_days(
        self,
        plan_id: str,
        days: List[Day],
        start_date: Optional[date] = None,
    ) -> None:
        """Overwrite the plan's complete days list (and start date if given)."""
        ...

    @abstractmethod
    async def set_meal_completion(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        is_completed: bool,
    ) -> None:
        ...

    @abstractmethod
    async def list_alternatives(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        limit: int,
    ) -> List[Recipe]:
        """Return candidate replacement recipes in store order (may be empty)."""
        ...

    @abstractmethod
    async def apply_alternative(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        recipe_ref: RecipeRef,
    ) -> Meal:
        """Install the referenced recipe on the slot and return the updated meal."""
        ...

    async def aclose(self) -> None:
        """Release held resources. Stores without any keep the default."""
        return None
