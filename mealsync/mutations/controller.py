"""Optimistic mutation controller.

Every mutation is applied to the cached PlanCollection synchronously, at
invocation, and the matching remote write is then scheduled on the running
event loop. The caller gets a SyncTicket it may await for the outcome; the
local state never waits on the network and is never rolled back.

SYNC FLAGS:
    Each write is keyed by (plan_id, meal_id) for per-meal writes and by
    (plan_id, None) for whole-plan writes. A key is PENDING while its most
    recent write is in flight. Only that most recent write may settle the
    key to SYNCED or FAILED, so an older write landing late never marks
    newer local state as synced.

FAILURES:
    NetworkError / NotFoundError / ValidationError from the store and
    timeouts are caught at the task boundary, logged, passed to the
    reporter callback and recorded on the MutationOutcome. Any other
    exception a store raises is wrapped in a NetworkError the same way, so
    a write task never ends with an exception.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generator, List, Optional, Set, Tuple

from mealsync.data_layer.exceptions import NetworkError, PlanSyncError, SyncErrorCode
from mealsync.data_layer.models import Plan, PlanStatus
from mealsync.data_layer.plan_collection import PlanCollection
from mealsync.providers.plan_store import PlanStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 12.0

SyncKey = Tuple[str, Optional[str]]


class SyncState(Enum):
    """Remote confirmation state of a locally mutated entity."""

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass(frozen=True)
class MutationOutcome:
    """Result of one scheduled remote write."""

    operation: str
    plan_id: str
    key: SyncKey
    sequence: int
    error: Optional[PlanSyncError] = None
    superseded: bool = False  # a newer write for the same key was issued first

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "plan_id": self.plan_id,
            "meal_id": self.key[1],
            "sequence": self.sequence,
            "ok": self.ok,
            "superseded": self.superseded,
            "error": self.error.to_dict() if self.error else None,
        }


class SyncTicket:
    """Handle on a scheduled remote write. Awaiting it yields the outcome."""

    def __init__(self, task: "asyncio.Task[MutationOutcome]", key: SyncKey, sequence: int):
        self._task = task
        self.key = key
        self.sequence = sequence

    def __await__(self) -> Generator[Any, None, MutationOutcome]:
        return self._task.__await__()

    def done(self) -> bool:
        return self._task.done()

    @property
    def outcome(self) -> Optional[MutationOutcome]:
        """The outcome once the write has finished, else None."""
        if not self._task.done() or self._task.cancelled():
            return None
        return self._task.result()


Reporter = Callable[[MutationOutcome], None]


class OptimisticMutationController:
    """Applies plan mutations locally and syncs them to the store.

    Mutations must be invoked from a running event loop.

    Args:
        collection: The client's cached plans
        store: Remote plan store
        reporter: Called with the outcome of every failed write
        timeout_seconds: Upper bound for each remote call
    """

    def __init__(
        self,
        collection: PlanCollection,
        store: PlanStore,
        reporter: Optional[Reporter] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.collection = collection
        self.store = store
        self.reporter = reporter
        self.timeout_seconds = timeout_seconds
        self._sequence = 0
        self._latest: Dict[SyncKey, int] = {}
        self._states: Dict[SyncKey, SyncState] = {}
        self._errors: Dict[SyncKey, PlanSyncError] = {}
        self._tasks: Set["asyncio.Task[MutationOutcome]"] = set()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def toggle_completion(self, plan_id: str, day_index: int, meal_index: int) -> Optional[SyncTicket]:
        """Flip a meal's completion flag and send the new value to the store.

        Returns:
            SyncTicket, or None when the meal does not exist (no-op)
        """
        loop = asyncio.get_running_loop()
        meal = self.collection.get_meal(plan_id, day_index, meal_index)
        if meal is None:
            logger.debug(
                "toggle_completion: no meal at plan %s day %d meal %d", plan_id, day_index, meal_index
            )
            return None

        meal.is_completed = not meal.is_completed
        is_completed = meal.is_completed
        return self._schedule(
            loop,
            "toggle_completion",
            plan_id,
            meal.meal_id,
            lambda: self.store.set_meal_completion(plan_id, day_index, meal_index, is_completed),
            {"plan_id": plan_id, "day_index": day_index, "meal_index": meal_index},
        )

    def delete_meal(self, plan_id: str, day_index: int, meal_id: str) -> Optional[SyncTicket]:
        """Remove a meal by id and send the plan's full days list to the store.

        Returns:
            SyncTicket, or None when the plan, day or meal does not exist
        """
        loop = asyncio.get_running_loop()
        meal_index = self.collection.find_meal_index(plan_id, day_index, meal_id)
        if meal_index is None:
            logger.debug("delete_meal: no meal %s in plan %s day %d", meal_id, plan_id, day_index)
            return None

        plan = self.collection.get_plan(plan_id)
        del plan.days[day_index].meals[meal_index]
        days = copy.deepcopy(plan.days)
        return self._schedule(
            loop,
            "delete_meal",
            plan_id,
            None,
            lambda: self.store.replace_plan_days(plan_id, days),
            {"plan_id": plan_id, "day_index": day_index, "meal_id": meal_id},
        )

    def set_plan_status(self, plan_id: str, status: PlanStatus) -> Optional[SyncTicket]:
        """Change a plan's status. A plan leaving ACTIVE leaves the timeline."""
        loop = asyncio.get_running_loop()
        plan = self.collection.get_plan(plan_id)
        if plan is None:
            logger.debug("set_plan_status: no plan %s", plan_id)
            return None

        plan.status = status
        return self._schedule(
            loop,
            "set_plan_status",
            plan_id,
            None,
            lambda: self.store.set_plan_status(plan_id, status),
            {"plan_id": plan_id, "status": status.value},
        )

    def update_start_date(self, plan_id: str, start_date: date) -> Optional[SyncTicket]:
        """Move a plan's start date. Explicit per-day dates are left as they are."""
        loop = asyncio.get_running_loop()
        plan = self.collection.get_plan(plan_id)
        if plan is None:
            logger.debug("update_start_date: no plan %s", plan_id)
            return None

        plan.start_date = start_date
        days = copy.deepcopy(plan.days)
        return self._schedule(
            loop,
            "update_start_date",
            plan_id,
            None,
            lambda: self.store.replace_plan_days(plan_id, days, start_date),
            {"plan_id": plan_id, "start_date": start_date.isoformat()},
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self) -> List[str]:
        """Refetch every plan, replace the cache and report what differed.

        Sync flags are cleared; writes still in flight can no longer settle
        them.

        Returns:
            Sorted ids of plans that were added, removed or changed

        Raises:
            PlanSyncError: If the refetch fails (the cache is left as is)
        """
        try:
            remote = await asyncio.wait_for(self.store.list_plans(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise NetworkError(
                "Plan refetch timed out", {"operation": "reconcile"}, code=SyncErrorCode.TIMEOUT
            )

        changed = _diff_plans(self.collection.plans(), remote)
        self.collection.replace_all(remote)
        self._latest.clear()
        self._states.clear()
        self._errors.clear()
        if changed:
            logger.info("Reconcile replaced %d plan(s); changed: %s", len(remote), ", ".join(changed))
        return changed

    async def drain(self) -> List[MutationOutcome]:
        """Wait for every write still in flight and return their outcomes."""
        outcomes: List[MutationOutcome] = []
        seen: Set["asyncio.Task[MutationOutcome]"] = set()
        while True:
            pending = [task for task in self._tasks if task not in seen]
            if not pending:
                return outcomes
            seen.update(pending)
            outcomes.extend(await asyncio.gather(*pending))

    # ------------------------------------------------------------------
    # Sync flags
    # ------------------------------------------------------------------

    def sync_state(self, plan_id: str, meal_id: Optional[str] = None) -> Optional[SyncState]:
        """Sync flag of a meal (or of the whole plan when meal_id is None)."""
        return self._states.get((plan_id, meal_id))

    def sync_error(self, plan_id: str, meal_id: Optional[str] = None) -> Optional[PlanSyncError]:
        return self._errors.get((plan_id, meal_id))

    def sync_states(self) -> Dict[SyncKey, SyncState]:
        return dict(self._states)

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _schedule(
        self,
        loop: asyncio.AbstractEventLoop,
        operation: str,
        plan_id: str,
        meal_id: Optional[str],
        call: Callable[[], Awaitable[None]],
        context: Dict[str, Any],
    ) -> SyncTicket:
        self._sequence += 1
        sequence = self._sequence
        key = (plan_id, meal_id)
        self._latest[key] = sequence
        self._states[key] = SyncState.PENDING
        self._errors.pop(key, None)

        task = loop.create_task(self._run(operation, plan_id, key, sequence, call, context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return SyncTicket(task, key, sequence)

    async def _run(
        self,
        operation: str,
        plan_id: str,
        key: SyncKey,
        sequence: int,
        call: Callable[[], Awaitable[None]],
        context: Dict[str, Any],
    ) -> MutationOutcome:
        error: Optional[PlanSyncError] = None
        try:
            await asyncio.wait_for(call(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            error = NetworkError(
                f"{operation} timed out after {self.timeout_seconds:g}s",
                dict(context, operation=operation),
                code=SyncErrorCode.TIMEOUT,
            )
        except PlanSyncError as e:
            error = e
        except Exception as e:
            logger.exception("%s #%d raised an unexpected error for %s", operation, sequence, key)
            error = NetworkError(
                f"{operation} failed: {e}",
                dict(context, operation=operation, error_type=type(e).__name__),
            )

        latest = self._latest.get(key) == sequence
        if latest:
            self._states[key] = SyncState.SYNCED if error is None else SyncState.FAILED
            if error is not None:
                self._errors[key] = error

        outcome = MutationOutcome(
            operation=operation,
            plan_id=plan_id,
            key=key,
            sequence=sequence,
            error=error,
            superseded=not latest,
        )
        if error is None:
            logger.debug("%s #%d synced for %s", operation, sequence, key)
        else:
            logger.warning("%s #%d failed for %s: %s", operation, sequence, key, error)
            if self.reporter is not None:
                self.reporter(outcome)
        return outcome


def _diff_plans(local: List[Plan], remote: List[Plan]) -> List[str]:
    local_by_id = {plan.id: plan for plan in local}
    remote_by_id = {plan.id: plan for plan in remote}
    changed = set(local_by_id) ^ set(remote_by_id)
    for plan_id in set(local_by_id) & set(remote_by_id):
        if local_by_id[plan_id] != remote_by_id[plan_id]:
            changed.add(plan_id)
    return sorted(changed)
