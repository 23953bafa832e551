"""Timeline merge: one canonical, date-ordered view over all active plans.

Algorithm:
1. Keep plans whose status is active.
2. Resolve every (plan, day index) to a date; unaddressable days are skipped.
3. Group the resolved pairs by ISO date key.
4. Within a group the pair of the plan with the greatest created_at wins,
   ties broken by the greatest plan id. Losers are dropped but flag the
   winner (and the merge) as overlapping.
5. Emit one entry per date key in ascending key order.

Entries hold deep copies of the winning day's meals, so later mutations of
the plan collection never show through an already-built timeline.
"""

import copy
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union

from mealsync.data_layer.models import Meal, Plan
from mealsync.planning.calendar import as_calendar_date, date_key, resolve_date


@dataclass(frozen=True)
class TimelineEntry:
    """The canonical (plan, day) pair for one calendar date."""

    date_key: str
    plan_id: str
    day_index: int
    meals: Tuple[Meal, ...]
    overlap: bool = False
    plan_title: str = ""


@dataclass(frozen=True)
class MergeResult:
    """Output of merge(): ordered entries plus overlap bookkeeping."""

    entries: Tuple[TimelineEntry, ...] = ()
    has_overlap: bool = False
    overlap_dates: Tuple[str, ...] = ()
    today_index: Optional[int] = None
    _positions: Dict[str, int] = field(default_factory=dict, repr=False, compare=False)

    def index_of(self, key: Union[str, date]) -> Optional[int]:
        """Position of the entry for key, or None if the date is not covered."""
        if isinstance(key, date):
            key = date_key(as_calendar_date(key))
        return self._positions.get(key)

    def default_index(self, today: Union[str, date, None]) -> int:
        """Entry to show first: today's entry if present, otherwise 0."""
        if today is None:
            return 0
        index = self.index_of(today)
        return index if index is not None else 0

    def entry_for(self, key: Union[str, date]) -> Optional[TimelineEntry]:
        index = self.index_of(key)
        return self.entries[index] if index is not None else None


def _created_at_key(plan: Plan) -> datetime:
    created = plan.created_at
    if created.tzinfo is None:
        return created.replace(tzinfo=timezone.utc)
    return created


def _precedence(plan: Plan) -> Tuple[datetime, str]:
    """Ordering key for same-date conflicts; the maximum wins."""
    return _created_at_key(plan), plan.id


def merge(plans: Iterable[Plan], today: Union[str, date, None] = None) -> MergeResult:
    """Merge the active plans into one conflict-resolved timeline.

    Args:
        plans: Cached plans; non-active plans are ignored
        today: Optional date (or ISO key) used to fill MergeResult.today_index

    Returns:
        MergeResult with entries in ascending date_key order
    """
    groups: Dict[str, List[Tuple[Plan, int]]] = {}
    for plan in plans:
        if not plan.is_active:
            continue
        for day_index in range(len(plan.days)):
            resolved = resolve_date(plan, day_index)
            if resolved is None:
                continue
            groups.setdefault(date_key(resolved), []).append((plan, day_index))

    entries: List[TimelineEntry] = []
    overlap_dates: List[str] = []
    for key in sorted(groups):
        members = groups[key]
        winner_plan, winner_day = max(members, key=lambda member: _precedence(member[0]))
        overlap = len(members) > 1
        if overlap:
            overlap_dates.append(key)
        entries.append(TimelineEntry(
            date_key=key,
            plan_id=winner_plan.id,
            day_index=winner_day,
            meals=tuple(copy.deepcopy(winner_plan.days[winner_day].meals)),
            overlap=overlap,
            plan_title=winner_plan.title,
        ))

    positions = {entry.date_key: index for index, entry in enumerate(entries)}
    today_index = None
    if today is not None:
        today_key = date_key(as_calendar_date(today)) if isinstance(today, date) else today
        today_index = positions.get(today_key)

    return MergeResult(
        entries=tuple(entries),
        has_overlap=bool(overlap_dates),
        overlap_dates=tuple(overlap_dates),
        today_index=today_index,
        _positions=positions,
    )
