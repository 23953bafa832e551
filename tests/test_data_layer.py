"""Unit tests for data models, the plan collection and sync errors."""

import datetime
import typing

import pytest

from mealsync.data_layer.exceptions import (
    NetworkError,
    NotFoundError,
    PlanSyncError,
    StaleSessionError,
    SyncErrorCode,
    ValidationError,
)
from mealsync.data_layer.models import Day, Meal, Plan, PlanStatus
from mealsync.data_layer.plan_collection import PlanCollection

from conftest import make_meal, make_plan


class TestModels:
    """Test model helpers."""

    @pytest.mark.parametrize("raw,expected", [
        ("active", PlanStatus.ACTIVE),
        (" Draft ", PlanStatus.DRAFT),
        ("ARCHIVED", PlanStatus.ARCHIVED),
        ("paused", None),
    ])
    def test_status_from_string(self, raw, expected):
        assert PlanStatus.from_string(raw) is expected

    def test_current_recipe(self):
        assert make_meal("m1", recipe_name="Soup").current_recipe.name == "Soup"
        assert Meal(meal_id="m2", type="snack").current_recipe is None

    def test_is_active(self):
        assert make_plan("p").is_active
        assert not make_plan("p", status=PlanStatus.COMPLETED).is_active

    def test_date_fields_annotated_as_dates(self):
        hints = typing.get_type_hints(Day)
        assert hints["date"] == typing.Optional[datetime.date]
        plan_hints = typing.get_type_hints(Plan)
        assert plan_hints["start_date"] == typing.Optional[datetime.date]
        assert plan_hints["created_at"] is datetime.datetime


class TestPlanCollection:
    """Test PlanCollection lookups."""

    @pytest.fixture
    def collection(self, two_plans):
        return PlanCollection(two_plans)

    def test_membership_and_order(self, collection):
        assert len(collection) == 2
        assert "A" in collection
        assert [plan.id for plan in collection] == ["A", "B"]

    def test_get_meal(self, collection):
        assert collection.get_meal("A", 1, 0).meal_id == "m3"
        assert collection.get_meal("A", 1, 1) is None
        assert collection.get_meal("A", -1, 0) is None
        assert collection.get_meal("Z", 0, 0) is None

    def test_find_and_locate(self, collection):
        assert collection.find_meal_index("A", 0, "m1") == 0
        assert collection.find_meal_index("A", 0, "m3") is None
        assert collection.locate_meal("A", "m3").type == "dinner"
        assert collection.locate_meal("A", "zz") is None

    def test_replace_plan_and_all(self, collection):
        collection.replace_plan(make_plan("A", days=[Day()]))
        assert collection.get_plan("A").days == [Day()]
        collection.replace_all([make_plan("C")])
        assert [plan.id for plan in collection.plans()] == ["C"]


class TestSyncErrors:
    """Test structured error types."""

    def test_not_found(self):
        error = NotFoundError("Meal plan 'x' not found", {"plan_id": "x"})
        assert isinstance(error, PlanSyncError)
        assert error.code is SyncErrorCode.NOT_FOUND
        assert str(error) == "[NOT_FOUND] Meal plan 'x' not found"
        assert error.to_dict() == {
            "error_code": "NOT_FOUND",
            "message": "Meal plan 'x' not found",
            "context": {"plan_id": "x"},
        }

    def test_network_codes(self):
        assert NetworkError("x").code is SyncErrorCode.NETWORK_FAILURE
        assert NetworkError("x", code=SyncErrorCode.TIMEOUT).code is SyncErrorCode.TIMEOUT

    def test_validation_context_defaults_empty(self):
        assert ValidationError("bad").context == {}

    def test_stale_session(self):
        error = StaleSessionError("P/0/1", 1, 2)
        assert error.code is SyncErrorCode.STALE_SESSION
        assert error.context == {"slot": "P/0/1", "token": 1, "active_token": 2}
