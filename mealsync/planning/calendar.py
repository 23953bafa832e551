"""Calendar resolution: map (plan, day index) to a concrete calendar date.

An explicit day date is authoritative. Otherwise the date is implied as
``plan.start_date + day_index`` days. A day with neither is unaddressable
and resolves to None. Nothing here performs I/O or raises.
"""

from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Tuple

from mealsync.data_layer.models import Plan


def as_calendar_date(value: Any) -> Optional[date]:
    """Return value as a date-only value, or None if it is not a date.

    Datetimes keep their own calendar day (time-of-day is discarded, the
    timezone is not shifted).
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def date_key(value: date) -> str:
    """ISO ``YYYY-MM-DD`` key; lexicographic order equals chronological order."""
    return value.isoformat()


def resolve_date(plan: Plan, day_index: int) -> Optional[date]:
    """Resolve the calendar date of a plan day.

    Args:
        plan: Plan owning the day
        day_index: Zero-based position within plan.days

    Returns:
        The explicit day date, else start_date + day_index days, else None
    """
    if not 0 <= day_index < len(plan.days):
        return None

    explicit = as_calendar_date(plan.days[day_index].date)
    if explicit is not None:
        return explicit

    start = as_calendar_date(plan.start_date)
    if start is None:
        return None
    try:
        return start + timedelta(days=day_index)
    except OverflowError:
        return None


def resolve_plan_dates(plan: Plan) -> List[Optional[date]]:
    """Resolved date for every day of the plan, None for unaddressable days."""
    return [resolve_date(plan, index) for index in range(len(plan.days))]


def plan_date_range(plan: Plan) -> Optional[Tuple[date, date]]:
    """First and last resolved date of the plan, or None if no day resolves."""
    resolved = [d for d in resolve_plan_dates(plan) if d is not None]
    if not resolved:
        return None
    return min(resolved), max(resolved)


def plan_covers(plan: Plan, day: date) -> bool:
    """True if day falls within the plan's resolved date range."""
    span = plan_date_range(plan)
    return span is not None and span[0] <= day <= span[1]
