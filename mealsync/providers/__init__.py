"""Plan store abstraction layer.

This package decouples the mutation controller and the alternatives broker
from concrete storage (REST backend, in-memory, JSON file).
"""

from mealsync.providers.plan_store import PlanStore
from mealsync.providers.memory_store import InMemoryPlanStore, JsonFilePlanStore
from mealsync.providers.http_store import HttpPlanStore

__all__ = [
    "PlanStore",
    "InMemoryPlanStore",
    "JsonFilePlanStore",
    "HttpPlanStore",
]
