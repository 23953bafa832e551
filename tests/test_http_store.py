"""Tests for the REST plan store using httpx.MockTransport."""

import json
from datetime import date

import httpx
import pytest

from mealsync.alternatives.broker import AlternativesBroker, SwapState
from mealsync.data_layer.exceptions import (
    NetworkError,
    NotFoundError,
    SyncErrorCode,
    ValidationError,
)
from mealsync.data_layer.models import Day, PlanStatus, RecipeRef
from mealsync.data_layer.plan_collection import PlanCollection
from mealsync.providers.http_store import HttpPlanStore

from conftest import make_meal, make_plan, make_recipe


def plan_json(plan_id, **extra):
    doc = {
        "_id": plan_id,
        "title": f"Plan {plan_id}",
        "status": "active",
        "createdAt": "2024-04-30T08:00:00Z",
        "startDate": "2024-05-01",
        "days": [{"meals": [{"_id": "m1", "type": "lunch", "recipes": [{"name": "Soup"}]}]}],
    }
    doc.update(extra)
    return doc


class Backend:
    """Routes requests to canned handlers and records them."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


def make_store(handler, **kwargs):
    backend = Backend(handler)
    store = HttpPlanStore(
        "http://plans.test/", api_token="tok", transport=httpx.MockTransport(backend), **kwargs
    )
    return store, backend


class TestListAndGet:
    """Test plan reads."""

    async def test_list_follows_pages(self):
        def handler(request):
            page = int(request.url.params["page"])
            return httpx.Response(200, json={
                "mealPlans": [plan_json(f"p{page}")], "totalPages": 3, "currentPage": page
            })

        store, backend = make_store(handler)
        plans = await store.list_plans()
        assert [plan.id for plan in plans] == ["p1", "p2", "p3"]
        assert len(backend.requests) == 3
        await store.aclose()

    async def test_list_bare_array(self):
        store, _ = make_store(lambda request: httpx.Response(200, json=[plan_json("x")]))
        assert [plan.id for plan in await store.list_plans()] == ["x"]

    async def test_bearer_token_sent(self):
        store, backend = make_store(lambda request: httpx.Response(200, json=[]))
        await store.list_plans()
        assert backend.requests[0].headers["Authorization"] == "Bearer tok"
        assert backend.requests[0].url.path == "/api/meal-plans"

    async def test_get_plan_envelope(self):
        store, backend = make_store(lambda request: httpx.Response(200, json={"mealPlan": plan_json("abc")}))
        plan = await store.get_plan("abc")
        assert plan.id == "abc"
        assert plan.start_date == date(2024, 5, 1)
        assert backend.requests[0].url.path == "/api/meal-plans/abc"

    async def test_get_plan_not_found(self):
        store, _ = make_store(lambda request: httpx.Response(404, json={"message": "Meal plan not found"}))
        with pytest.raises(NotFoundError) as exc_info:
            await store.get_plan("abc")
        assert exc_info.value.message == "Meal plan not found"
        assert exc_info.value.context["status_code"] == 404


class TestErrorMapping:
    """Test transport and status error translation."""

    async def test_server_error(self):
        store, _ = make_store(lambda request: httpx.Response(500, json={"message": "boom"}))
        with pytest.raises(NetworkError) as exc_info:
            await store.list_plans()
        assert exc_info.value.code is SyncErrorCode.NETWORK_FAILURE
        assert exc_info.value.context["status_code"] == 500

    async def test_rate_limited(self):
        store, _ = make_store(lambda request: httpx.Response(429))
        with pytest.raises(NetworkError) as exc_info:
            await store.list_plans()
        assert exc_info.value.code is SyncErrorCode.RATE_LIMITED

    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        store, _ = make_store(handler)
        with pytest.raises(NetworkError) as exc_info:
            await store.list_plans()
        assert exc_info.value.code is SyncErrorCode.TIMEOUT

    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        store, _ = make_store(handler)
        with pytest.raises(NetworkError):
            await store.set_meal_completion("p", 0, 0, True)

    async def test_non_json_body(self):
        store, _ = make_store(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(ValidationError):
            await store.list_plans()

    def test_base_url_required(self):
        with pytest.raises(ValueError):
            HttpPlanStore("  ")


class TestWrites:
    """Test write requests."""

    async def test_set_meal_completion(self):
        store, backend = make_store(lambda request: httpx.Response(200, json={"meal": {}}))
        await store.set_meal_completion("p1", 2, 1, False)
        request = backend.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/meal-plans/p1/days/2/meals/1/toggle"
        assert json.loads(request.content) == {"isCompleted": False}

    async def test_replace_plan_days(self):
        store, backend = make_store(lambda request: httpx.Response(200, json={}))
        days = [Day(date=date(2024, 5, 1), meals=[make_meal("m1")]), Day()]
        await store.replace_plan_days("p1", days, date(2024, 5, 1))
        body = json.loads(backend.requests[0].content)
        assert backend.requests[0].method == "PUT"
        assert body["startDate"] == "2024-05-01"
        assert body["days"][0]["meals"][0]["mealId"] == "m1"
        assert body["days"][1] == {"meals": []}

    async def test_replace_plan_days_without_start_date(self):
        store, backend = make_store(lambda request: httpx.Response(200, json={}))
        await store.replace_plan_days("p1", [])
        assert json.loads(backend.requests[0].content) == {"days": []}

    async def test_set_status_active_uses_activate(self):
        store, backend = make_store(lambda request: httpx.Response(200, json={}))
        await store.set_plan_status("p1", PlanStatus.ACTIVE)
        assert [(r.method, r.url.path) for r in backend.requests] == [
            ("POST", "/api/meal-plans/p1/activate")
        ]

    async def test_set_status_active_falls_back_to_put(self):
        def handler(request):
            if request.url.path.endswith("/activate"):
                return httpx.Response(405)
            return httpx.Response(200, json={})

        store, backend = make_store(handler)
        await store.set_plan_status("p1", PlanStatus.ACTIVE)
        assert [r.method for r in backend.requests] == ["POST", "PUT"]
        assert json.loads(backend.requests[1].content) == {"status": "active"}

    async def test_set_status_other(self):
        store, backend = make_store(lambda request: httpx.Response(200, json={}))
        await store.set_plan_status("p1", PlanStatus.COMPLETED)
        assert backend.requests[0].method == "PUT"
        assert json.loads(backend.requests[0].content) == {"status": "completed"}


class TestAlternatives:
    """Test alternatives listing and apply."""

    async def test_list_alternatives(self):
        payload = {"alternatives": [
            {"id": "es-1", "title": "Chili", "calories": 550, "protein_grams": 35},
            {"id": "fav-2", "title": "Bowl", "recipe": {"name": "Buddha Bowl", "nutrition": {"calories": 480}}},
        ]}
        store, backend = make_store(lambda request: httpx.Response(200, json=payload))
        recipes = await store.list_alternatives("p1", 0, 1, 2)
        assert backend.requests[0].url.path == "/api/meal-plans/p1/days/0/meals/1/alternatives"
        assert backend.requests[0].url.params["limit"] == "2"
        assert [r.name for r in recipes] == ["Chili", "Buddha Bowl"]
        assert recipes[0].nutrition.protein_g == 35.0
        assert recipes[1].recipe_id == "fav-2"

    async def test_empty_alternatives(self):
        store, _ = make_store(lambda request: httpx.Response(200, json={"alternatives": []}))
        assert await store.list_alternatives("p1", 0, 0, 3) == []

    async def test_apply_by_id(self):
        meal = {"_id": "m1", "type": "lunch", "isCompleted": False,
                "recipes": [{"name": "Chili", "nutrition": {"calories": 550}}],
                "totalNutrition": {"calories": 550}}
        store, backend = make_store(lambda request: httpx.Response(200, json={"meal": meal}))
        updated = await store.apply_alternative("p1", 0, 1, RecipeRef(recipe_id="es-1"))
        assert backend.requests[0].method == "PATCH"
        assert backend.requests[0].url.path == "/api/meal-plans/p1/days/0/meals/1"
        assert json.loads(backend.requests[0].content) == {"recipeId": "es-1"}
        assert updated.current_recipe.name == "Chili"
        assert updated.total_nutrition.calories == 550.0

    async def test_apply_inline_recipe(self):
        meal = {"type": "lunch", "recipes": [{"name": "Inline"}]}
        store, backend = make_store(lambda request: httpx.Response(200, json={"meal": meal}))
        await store.apply_alternative("p1", 0, 0, RecipeRef(recipe=make_recipe("Inline")))
        body = json.loads(backend.requests[0].content)
        assert body["recipe"]["name"] == "Inline"
        assert "recipeId" not in body

    async def test_apply_without_meal_in_response(self):
        store, _ = make_store(lambda request: httpx.Response(200, json={"message": "ok"}))
        with pytest.raises(ValidationError):
            await store.apply_alternative("p1", 0, 0, RecipeRef(recipe_id="es-1"))

    async def test_malformed_alternative_is_validation_error(self):
        payload = {"alternatives": [{"name": "X", "ingredients": 5}]}
        store, _ = make_store(lambda request: httpx.Response(200, json=payload))
        with pytest.raises(ValidationError):
            await store.list_alternatives("p1", 0, 0, 3)

    async def test_huge_times_ignored(self):
        body = b'{"alternatives": [{"name": "X", "prepTime": 1e400, "cookTime": Infinity}]}'
        store, _ = make_store(lambda request: httpx.Response(200, content=body))
        recipes = await store.list_alternatives("p1", 0, 0, 3)
        assert recipes[0].prep_time_minutes is None
        assert recipes[0].cook_time_minutes is None

    async def test_broker_recovers_from_malformed_alternatives(self):
        """A bad listing leaves the swap session idle, not stuck loading."""
        payload = {"alternatives": [{"name": "X", "ingredients": 5}]}
        store, _ = make_store(lambda request: httpx.Response(200, json=payload))
        plan = make_plan("p1", days=[Day(meals=[make_meal("m1", "lunch", "Chili")])])
        broker = AlternativesBroker(PlanCollection([plan]), store)
        with pytest.raises(ValidationError):
            await broker.fetch_alternatives("p1", 0, 0)
        assert broker.state is SwapState.IDLE
