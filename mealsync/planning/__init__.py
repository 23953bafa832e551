"""Planning module: calendar resolution and timeline merging."""

from .calendar import resolve_date, date_key, resolve_plan_dates, plan_date_range, plan_covers
from .timeline import merge, MergeResult, TimelineEntry

__all__ = [
    "resolve_date",
    "date_key",
    "resolve_plan_dates",
    "plan_date_range",
    "plan_covers",
    "merge",
    "MergeResult",
    "TimelineEntry",
]
