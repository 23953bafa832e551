"""Meal-plan timeline reconciliation and optimistic mutation engine."""

__version__ = "0.1.0"
