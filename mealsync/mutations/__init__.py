"""Mutations module: optimistic local apply with background store sync."""

from .controller import (
    MutationOutcome,
    OptimisticMutationController,
    SyncState,
    SyncTicket,
)

__all__ = [
    "MutationOutcome",
    "OptimisticMutationController",
    "SyncState",
    "SyncTicket",
]
