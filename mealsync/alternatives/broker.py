"""Alternatives broker: fetch replacement recipes and swap one into a slot.

A swap session tracks one slot through

    IDLE -> LOADING -> CHOICES_SHOWN -> APPLYING -> IDLE

A failed fetch returns to IDLE, a failed apply to CHOICES_SHOWN. Every
fetch and every apply takes a fresh generation token (an apply keeps the
choices of the session it continues); a response that comes back for a
token other than the active session's is discarded without touching local
state and the call raises StaleSessionError.

Unlike the mutation controller, the broker is pessimistic: the local meal
changes only after the store has confirmed and returned the updated meal.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from mealsync.data_layer.exceptions import (
    NetworkError,
    NotFoundError,
    PlanSyncError,
    StaleSessionError,
    SyncErrorCode,
    ValidationError,
)
from mealsync.data_layer.models import Meal, Recipe, RecipeRef
from mealsync.data_layer.plan_collection import PlanCollection
from mealsync.providers.plan_store import PlanStore

logger = logging.getLogger(__name__)

MIN_ALTERNATIVES = 1
MAX_ALTERNATIVES = 10
DEFAULT_ALTERNATIVES = 3


class SwapState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    CHOICES_SHOWN = "choices_shown"
    APPLYING = "applying"


@dataclass
class SwapSession:
    """One swap interaction for a single meal slot."""

    token: int
    plan_id: str
    day_index: int
    meal_index: int
    meal_id: str
    state: SwapState = SwapState.LOADING
    choices: List[Recipe] = field(default_factory=list)

    @property
    def slot(self) -> str:
        return f"{self.plan_id}/{self.day_index}/{self.meal_index}"

    def targets(self, plan_id: str, day_index: int, meal_index: int) -> bool:
        return (self.plan_id, self.day_index, self.meal_index) == (plan_id, day_index, meal_index)


def clamp_limit(limit: int) -> int:
    """Clamp a requested alternatives count to the store's bounds [1, 10]."""
    return max(MIN_ALTERNATIVES, min(int(limit), MAX_ALTERNATIVES))


class AlternativesBroker:
    """Fetches alternatives for a meal slot and applies the chosen one.

    Args:
        collection: The client's cached plans
        store: Remote plan store
        default_limit: Alternatives requested when the caller gives no limit
        timeout_seconds: Upper bound for each remote call
    """

    def __init__(
        self,
        collection: PlanCollection,
        store: PlanStore,
        default_limit: int = DEFAULT_ALTERNATIVES,
        timeout_seconds: float = 12.0,
    ) -> None:
        self.collection = collection
        self.store = store
        self.default_limit = clamp_limit(default_limit)
        self.timeout_seconds = timeout_seconds
        self._generation = 0
        self._session: Optional[SwapSession] = None

    @property
    def session(self) -> Optional[SwapSession]:
        return self._session

    @property
    def state(self) -> SwapState:
        return self._session.state if self._session is not None else SwapState.IDLE

    def close_session(self) -> None:
        """Abandon the active session; any response still in flight goes stale."""
        if self._session is not None:
            logger.debug("Closed swap session %d for %s", self._session.token, self._session.slot)
        self._session = None

    def _open(self, plan_id: str, day_index: int, meal_index: int, meal_id: str, state: SwapState) -> SwapSession:
        self._generation += 1
        self._session = SwapSession(
            token=self._generation,
            plan_id=plan_id,
            day_index=day_index,
            meal_index=meal_index,
            meal_id=meal_id,
            state=state,
        )
        return self._session

    def _is_active(self, session: SwapSession) -> bool:
        return self._session is not None and self._session.token == session.token

    def _stale(self, session: SwapSession) -> StaleSessionError:
        active = self._session.token if self._session is not None else 0
        logger.debug("Discarding response for stale swap session %d (active %d)", session.token, active)
        return StaleSessionError(session.slot, session.token, active)

    def _require_meal(self, plan_id: str, day_index: int, meal_index: int) -> Meal:
        meal = self.collection.get_meal(plan_id, day_index, meal_index)
        if meal is None:
            raise NotFoundError(
                "Meal not found at specified indices",
                {"plan_id": plan_id, "day_index": day_index, "meal_index": meal_index}
            )
        return meal

    async def _call(self, awaitable, operation: str, session: SwapSession):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise NetworkError(
                f"{operation} timed out after {self.timeout_seconds:g}s",
                {"operation": operation, "slot": session.slot},
                code=SyncErrorCode.TIMEOUT,
            )
        except PlanSyncError:
            raise
        except Exception as e:
            logger.warning("%s failed for %s: %s", operation, session.slot, e)
            raise NetworkError(
                f"{operation} failed: {e}",
                {"operation": operation, "slot": session.slot, "error_type": type(e).__name__},
            ) from e

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def fetch_alternatives(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        limit: Optional[int] = None,
    ) -> List[Recipe]:
        """Open a swap session for the slot and fetch its candidates.

        Args:
            plan_id, day_index, meal_index: Slot address
            limit: Requested count, clamped to [1, 10]

        Returns:
            Candidates in store order; an empty list is a valid answer

        Raises:
            NotFoundError: If the slot does not exist locally (no remote call)
            StaleSessionError: If another session was opened meanwhile
            PlanSyncError: If the store call fails
        """
        meal = self._require_meal(plan_id, day_index, meal_index)
        limit = clamp_limit(self.default_limit if limit is None else limit)
        session = self._open(plan_id, day_index, meal_index, meal.meal_id, SwapState.LOADING)

        try:
            choices = await self._call(
                self.store.list_alternatives(plan_id, day_index, meal_index, limit),
                "list_alternatives",
                session,
            )
        except PlanSyncError:
            if not self._is_active(session):
                raise self._stale(session)
            self._session = None
            raise

        if not self._is_active(session):
            raise self._stale(session)
        session.choices = list(choices)
        session.state = SwapState.CHOICES_SHOWN
        logger.debug("Swap session %d: %d alternative(s) for %s", session.token, len(choices), session.slot)
        return list(choices)

    async def apply_alternative(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        recipe_ref: Union[RecipeRef, Recipe],
    ) -> Meal:
        """Install a recipe on the slot through the store, then locally.

        The slot is located afterwards by the meal id captured before the
        call, so a meal that moved within its day still receives the update.
        Only recipes[0] and the meal-level fields the store returns are
        replaced; the local meal id is kept.

        Returns:
            Copy of the updated local meal

        Raises:
            NotFoundError: If the slot does not exist locally (no remote call)
                or the meal left its day while the call was in flight
            ValidationError: If the store answers with a meal without recipes
            StaleSessionError: If another session was opened meanwhile; the
                response is discarded and local state is untouched
            PlanSyncError: If the store call fails (local state untouched)
        """
        if isinstance(recipe_ref, Recipe):
            recipe_ref = RecipeRef.for_recipe(recipe_ref)
        meal = self._require_meal(plan_id, day_index, meal_index)
        meal_id = meal.meal_id

        previous = self._session
        session = self._open(plan_id, day_index, meal_index, meal_id, SwapState.APPLYING)
        if previous is not None and previous.targets(plan_id, day_index, meal_index):
            session.choices = previous.choices

        try:
            updated = await self._call(
                self.store.apply_alternative(plan_id, day_index, meal_index, recipe_ref),
                "apply_alternative",
                session,
            )
            if not self._is_active(session):
                raise self._stale(session)
            if not updated.recipes:
                raise ValidationError(
                    "Store returned the updated meal without a recipe",
                    {"plan_id": plan_id, "day_index": day_index, "meal_index": meal_index}
                )
        except StaleSessionError:
            raise
        except PlanSyncError:
            if not self._is_active(session):
                raise self._stale(session)
            session.state = SwapState.CHOICES_SHOWN
            raise

        self._session = None
        target = self._install(plan_id, day_index, meal_id, updated)
        return copy.deepcopy(target)

    def _install(self, plan_id: str, day_index: int, meal_id: str, updated: Meal) -> Meal:
        index = self.collection.find_meal_index(plan_id, day_index, meal_id)
        if index is None:
            logger.warning("Swapped meal %s vanished from plan %s day %d", meal_id, plan_id, day_index)
            raise NotFoundError(
                "Meal no longer present locally",
                {"plan_id": plan_id, "day_index": day_index, "meal_id": meal_id}
            )
        target = self.collection.get_meal(plan_id, day_index, index)

        recipe = copy.deepcopy(updated.recipes[0])
        if target.recipes:
            target.recipes[0] = recipe
        else:
            target.recipes = [recipe]
        target.total_nutrition = copy.deepcopy(updated.total_nutrition or recipe.nutrition)
        target.is_completed = updated.is_completed
        if updated.scheduled_time:
            target.scheduled_time = updated.scheduled_time
        if updated.type:
            target.type = updated.type
        logger.info("Swapped meal %s of plan %s to '%s'", meal_id, plan_id, recipe.name)
        return target
