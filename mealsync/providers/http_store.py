"""REST plan store client built on httpx.

Maps the PlanStore contract onto the meal-plan backend:

    list_plans           GET    /api/meal-plans?page=N
    get_plan             GET    /api/meal-plans/{id}
    set_plan_status      PUT    /api/meal-plans/{id}             {status}
                         POST   /api/meal-plans/{id}/activate    (status=active)
    replace_plan_days    PUT    /api/meal-plans/{id}             {days, startDate?}
    set_meal_completion  POST   /api/meal-plans/{id}/days/{d}/meals/{m}/toggle
    list_alternatives    GET    /api/meal-plans/{id}/days/{d}/meals/{m}/alternatives
    apply_alternative    PATCH  /api/meal-plans/{id}/days/{d}/meals/{m}

ERROR MAPPING:
- 404                              -> NotFoundError
- 429                              -> NetworkError(RATE_LIMITED)
- timeout                          -> NetworkError(TIMEOUT)
- connection errors, other non-2xx -> NetworkError
- undecodable or malformed JSON    -> ValidationError
"""

import logging
import os
from datetime import date, tzinfo
from typing import Any, Dict, List, Optional

import httpx

from mealsync.data_layer.exceptions import (
    NetworkError,
    NotFoundError,
    SyncErrorCode,
    ValidationError,
)
from mealsync.data_layer.models import Day, Meal, Plan, PlanStatus, Recipe, RecipeRef
from mealsync.ingestion.plan_parser import (
    day_to_dict,
    parse_alternative,
    parse_meal,
    parse_plan,
    parse_plans,
    recipe_to_dict,
)
from mealsync.providers.plan_store import PlanStore

logger = logging.getLogger(__name__)

MAX_PAGES = 100  # Guards against a store that never reports its page count


class HttpPlanStore(PlanStore):
    """PlanStore backed by the meal-plan REST API.

    Usage::

        store = HttpPlanStore("http://localhost:5000", api_token="...")
        plans = await store.list_plans()
        await store.aclose()

    A pre-built httpx transport can be passed for testing
    (``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout_seconds: float = 12.0,
        tz: Optional[tzinfo] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ValueError("base_url is required for the remote plan store")
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self.base_url = base_url.strip().rstrip("/")
        self.tz = tz
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_env(cls, env_var: str = "MEALSYNC_BASE_URL") -> "HttpPlanStore":
        """Create a store from MEALSYNC_BASE_URL / MEALSYNC_API_TOKEN.

        Raises:
            ValueError: If the base URL variable is not set
        """
        base_url = os.environ.get(env_var)
        if not base_url:
            raise ValueError(f"Environment variable {env_var} not set")
        return cls(base_url=base_url, api_token=os.environ.get("MEALSYNC_API_TOKEN"))

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        context: Dict[str, Any],
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and translate transport failures and bad statuses.

        Raises:
            NotFoundError: On 404
            NetworkError: On timeouts, connection errors, 429 and other non-2xx
        """
        context = dict(context, operation=operation)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            raise NetworkError("Plan store request timed out", context, code=SyncErrorCode.TIMEOUT)
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to reach plan store: {e}", context)

        if response.status_code == 404:
            raise NotFoundError(
                _error_message(response) or f"{operation}: target not found",
                dict(context, status_code=404)
            )
        if response.status_code == 429:
            raise NetworkError(
                "Too many requests. Please wait before trying again.",
                dict(context, status_code=429),
                code=SyncErrorCode.RATE_LIMITED
            )
        if not response.is_success:
            raise NetworkError(
                f"Plan store returned status {response.status_code}",
                dict(context, status_code=response.status_code)
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError:
            raise ValidationError(
                "Plan store returned a body that is not JSON",
                {"operation": operation, "status_code": response.status_code}
            )

    @staticmethod
    def _meal_path(plan_id: str, day_index: int, meal_index: int) -> str:
        return f"/api/meal-plans/{plan_id}/days/{day_index}/meals/{meal_index}"

    # ------------------------------------------------------------------
    # PlanStore interface
    # ------------------------------------------------------------------

    async def list_plans(self) -> List[Plan]:
        plans: List[Plan] = []
        page = 1
        while True:
            response = await self._request(
                "GET", "/api/meal-plans", "list_plans", {"page": page}, params={"page": page}
            )
            payload = self._json(response, "list_plans")
            plans.extend(parse_plans(payload, self.tz))

            total_pages = payload.get("totalPages", 1) if isinstance(payload, dict) else 1
            if not isinstance(total_pages, int) or page >= min(total_pages, MAX_PAGES):
                break
            page += 1
        logger.debug("Fetched %d plans over %d page(s)", len(plans), page)
        return plans

    async def get_plan(self, plan_id: str) -> Plan:
        response = await self._request(
            "GET", f"/api/meal-plans/{plan_id}", "get_plan", {"plan_id": plan_id}
        )
        payload = self._json(response, "get_plan")
        if isinstance(payload, dict) and isinstance(payload.get("mealPlan"), dict):
            payload = payload["mealPlan"]
        return parse_plan(payload, self.tz)

    async def set_plan_status(self, plan_id: str, status: PlanStatus) -> None:
        context = {"plan_id": plan_id, "status": status.value}
        if status is PlanStatus.ACTIVE:
            try:
                await self._request(
                    "POST", f"/api/meal-plans/{plan_id}/activate", "set_plan_status", context
                )
                logger.info("Activated plan %s", plan_id)
                return
            except NotFoundError:
                # Older backends have no activate route; a missing plan 404s
                # again on the PUT below.
                logger.debug("Activate route unavailable for %s; falling back to PUT", plan_id)
            except NetworkError as e:
                if e.context.get("status_code") != 405:
                    raise
                logger.debug("Activate route not allowed for %s; falling back to PUT", plan_id)

        await self._request(
            "PUT", f"/api/meal-plans/{plan_id}", "set_plan_status", context,
            json={"status": status.value}
        )
        logger.info("Set plan %s status to %s", plan_id, status.value)

    async def replace_plan_days(
        self,
        plan_id: str,
        days: List[Day],
        start_date: Optional[date] = None,
    ) -> None:
        body: Dict[str, Any] = {"days": [day_to_dict(day) for day in days]}
        if start_date is not None:
            body["startDate"] = start_date.isoformat()
        await self._request(
            "PUT", f"/api/meal-plans/{plan_id}", "replace_plan_days",
            {"plan_id": plan_id, "day_count": len(days)}, json=body
        )
        logger.info("Replaced %d day(s) of plan %s", len(days), plan_id)

    async def set_meal_completion(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        is_completed: bool,
    ) -> None:
        await self._request(
            "POST", self._meal_path(plan_id, day_index, meal_index) + "/toggle",
            "set_meal_completion",
            {"plan_id": plan_id, "day_index": day_index, "meal_index": meal_index},
            json={"isCompleted": is_completed}
        )
        logger.info(
            "Set completion of plan %s day %d meal %d to %s",
            plan_id, day_index, meal_index, is_completed
        )

    async def list_alternatives(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        limit: int,
    ) -> List[Recipe]:
        context = {"plan_id": plan_id, "day_index": day_index, "meal_index": meal_index}
        response = await self._request(
            "GET", self._meal_path(plan_id, day_index, meal_index) + "/alternatives",
            "list_alternatives", context, params={"limit": limit}
        )
        payload = self._json(response, "list_alternatives")
        items = payload.get("alternatives") if isinstance(payload, dict) else payload
        if items is None:
            items = []
        if not isinstance(items, list):
            raise ValidationError("Alternatives listing must be a list", dict(context, operation="list_alternatives"))
        return [parse_alternative(item) for item in items]

    async def apply_alternative(
        self,
        plan_id: str,
        day_index: int,
        meal_index: int,
        recipe_ref: RecipeRef,
    ) -> Meal:
        context = {"plan_id": plan_id, "day_index": day_index, "meal_index": meal_index}
        if recipe_ref.recipe is not None:
            body: Dict[str, Any] = {"recipe": recipe_to_dict(recipe_ref.recipe)}
        else:
            body = {"recipeId": recipe_ref.recipe_id}
        response = await self._request(
            "PATCH", self._meal_path(plan_id, day_index, meal_index),
            "apply_alternative", context, json=body
        )
        payload = self._json(response, "apply_alternative")
        meal_payload = payload.get("meal") if isinstance(payload, dict) else None
        if not isinstance(meal_payload, dict):
            raise ValidationError(
                "Apply response does not contain the updated meal",
                dict(context, operation="apply_alternative")
            )
        logger.info("Applied alternative to plan %s day %d meal %d", plan_id, day_index, meal_index)
        return parse_meal(meal_payload, day_index, meal_index)


def _error_message(response: httpx.Response) -> Optional[str]:
    """Backend error message from a JSON body like {"message": "..."}."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return None
