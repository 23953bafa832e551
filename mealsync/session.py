"""PlanSession: the caller-facing entry point of the engine.

Owns the cached PlanCollection and wires the mutation controller and the
alternatives broker to one PlanStore::

    async with PlanSession.from_settings(settings) as session:
        await session.load()
        timeline = session.timeline(today=date.today())
        session.toggle_completion(plan_id, 0, 1)
"""

import asyncio
import logging
from datetime import date
from typing import List, Optional, Union

from mealsync.alternatives.broker import AlternativesBroker
from mealsync.config import ClientSettings
from mealsync.data_layer.exceptions import NetworkError, NotFoundError, SyncErrorCode
from mealsync.data_layer.models import Meal, Plan, PlanStatus, Recipe, RecipeRef
from mealsync.data_layer.plan_collection import PlanCollection
from mealsync.mutations.controller import (
    MutationOutcome,
    OptimisticMutationController,
    Reporter,
    SyncTicket,
)
from mealsync.planning.calendar import resolve_date
from mealsync.planning.timeline import MergeResult, merge
from mealsync.providers.http_store import HttpPlanStore
from mealsync.providers.plan_store import PlanStore

logger = logging.getLogger(__name__)

MAX_RECORDED_FAILURES = 50


class PlanSession:
    """Cached plans plus the operations that read and mutate them."""

    def __init__(
        self,
        store: PlanStore,
        settings: Optional[ClientSettings] = None,
        reporter: Optional[Reporter] = None,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.store = store
        self.collection = PlanCollection()
        self.failures: List[MutationOutcome] = []
        self._reporter = reporter
        self.controller = OptimisticMutationController(
            self.collection,
            store,
            reporter=self._record_failure,
            timeout_seconds=self.settings.timeout_seconds,
        )
        self.broker = AlternativesBroker(
            self.collection,
            store,
            default_limit=self.settings.alternatives_limit,
            timeout_seconds=self.settings.timeout_seconds,
        )

    @classmethod
    def from_settings(cls, settings: ClientSettings, reporter: Optional[Reporter] = None) -> "PlanSession":
        """Create a session backed by the remote REST store.

        Raises:
            ValueError: If no base_url is configured
        """
        if not settings.base_url:
            raise ValueError("No remote base_url configured (set MEALSYNC_BASE_URL or remote.base_url)")
        store = HttpPlanStore(
            settings.base_url,
            api_token=settings.api_token,
            timeout_seconds=settings.timeout_seconds,
            tz=settings.tzinfo(),
        )
        return cls(store, settings, reporter)

    async def __aenter__(self) -> "PlanSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Wait for writes still in flight, then release the store."""
        try:
            await self.controller.drain()
        finally:
            await self.store.aclose()

    def _record_failure(self, outcome: MutationOutcome) -> None:
        self.failures.append(outcome)
        del self.failures[:-MAX_RECORDED_FAILURES]
        if self._reporter is not None:
            self._reporter(outcome)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Fetch every plan from the store into the cache.

        Returns:
            Number of plans loaded
        """
        try:
            plans = await asyncio.wait_for(self.store.list_plans(), timeout=self.settings.timeout_seconds)
        except asyncio.TimeoutError:
            raise NetworkError("Plan fetch timed out", {"operation": "load"}, code=SyncErrorCode.TIMEOUT)
        self.collection.replace_all(plans)
        logger.info("Loaded %d plan(s)", len(plans))
        return len(plans)

    def plans(self) -> List[Plan]:
        return self.collection.plans()

    def get_plan(self, plan_id: str) -> Plan:
        plan = self.collection.get_plan(plan_id)
        if plan is None:
            raise NotFoundError(f"Meal plan '{plan_id}' not found", {"plan_id": plan_id})
        return plan

    def timeline(self, today: Union[str, date, None] = None) -> MergeResult:
        return merge(self.collection.plans(), today=today)

    def resolve_date(self, plan_id: str, day_index: int) -> Optional[date]:
        plan = self.collection.get_plan(plan_id)
        return resolve_date(plan, day_index) if plan is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def toggle_completion(self, plan_id: str, day_index: int, meal_index: int) -> Optional[SyncTicket]:
        return self.controller.toggle_completion(plan_id, day_index, meal_index)

    def delete_meal(self, plan_id: str, day_index: int, meal_id: str) -> Optional[SyncTicket]:
        return self.controller.delete_meal(plan_id, day_index, meal_id)

    def set_plan_status(self, plan_id: str, status: PlanStatus) -> Optional[SyncTicket]:
        return self.controller.set_plan_status(plan_id, status)

    def update_start_date(self, plan_id: str, start_date: date) -> Optional[SyncTicket]:
        return self.controller.update_start_date(plan_id, start_date)

    async def reconcile(self) -> List[str]:
        return await self.controller.reconcile()

    async def drain(self) -> List[MutationOutcome]:
        return await self.controller.drain()

    # ------------------------------------------------------------------
    # Alternatives
    # ------------------------------------------------------------------

    async def fetch_alternatives(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        limit: Optional[int] = None,
    ) -> List[Recipe]:
        return await self.broker.fetch_alternatives(plan_id, day_index, meal_index, limit)

    async def apply_alternative(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        recipe_ref: Union[RecipeRef, Recipe],
    ) -> Meal:
        return await self.broker.apply_alternative(plan_id, day_index, meal_index, recipe_ref)
