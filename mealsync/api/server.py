"""FastAPI facade over a PlanSession.

Exposes the merged timeline and the plan mutations to a UI. Mutations
return as soon as the local apply is done; remote confirmation is visible
through GET /api/sync.
"""

import os
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from mealsync.config import ClientSettings, SettingsLoader
from mealsync.data_layer.exceptions import (
    NetworkError,
    NotFoundError,
    PlanSyncError,
    StaleSessionError,
    ValidationError,
)
from mealsync.data_layer.models import PlanStatus, RecipeRef
from mealsync.ingestion.plan_parser import parse_recipe
from mealsync.output.formatters import (
    day_label,
    format_meal_json,
    format_recipe_json,
    format_timeline_json,
)
from mealsync.session import PlanSession


class SwapRequest(BaseModel):
    recipe_id: Optional[str] = None
    recipe: Optional[Dict[str, Any]] = None


class StatusRequest(BaseModel):
    status: str


class StartDateRequest(BaseModel):
    start_date: date


class SyncEntry(BaseModel):
    plan_id: str
    meal_id: Optional[str] = None
    state: str


class SyncReport(BaseModel):
    pending: int
    states: List[SyncEntry] = Field(default_factory=list)
    failures: List[Dict[str, Any]] = Field(default_factory=list)


def _http_error(exc: PlanSyncError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, StaleSessionError):
        status = 409
    elif isinstance(exc, (NetworkError, ValidationError)):
        status = 502
    else:
        status = 500
    return HTTPException(status_code=status, detail=exc.to_dict())


def _parse_today(today: Optional[str]) -> Optional[date]:
    if today is None:
        return None
    try:
        return date.fromisoformat(today)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid date '{today}'") from exc


def create_app(session: PlanSession, load_on_startup: bool = False) -> FastAPI:
    """Build the API around an existing session.

    Args:
        session: Session whose cache the endpoints read and mutate
        load_on_startup: Fetch all plans when the app starts
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if load_on_startup:
            await session.load()
        yield
        await session.drain()

    app = FastAPI(title="mealsync API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Local development
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/timeline")
    async def get_timeline(today: Optional[str] = None) -> Dict[str, Any]:
        today_date = _parse_today(today)
        return format_timeline_json(session.timeline(today_date), today_date)

    @app.get("/api/plans/{plan_id}/days/{day_index}")
    async def get_day(plan_id: str, day_index: int) -> Dict[str, Any]:
        day = session.collection.get_day(plan_id, day_index)
        if day is None:
            raise HTTPException(status_code=404, detail="Day not found")
        resolved = session.resolve_date(plan_id, day_index)
        return {
            "plan_id": plan_id,
            "day_index": day_index,
            "date": resolved.isoformat() if resolved else None,
            "label": day_label(resolved, day_index),
            "meals": [format_meal_json(meal) for meal in day.meals],
        }

    @app.post("/api/plans/{plan_id}/days/{day_index}/meals/{meal_index}/toggle")
    async def toggle_meal(plan_id: str, day_index: int, meal_index: int) -> Dict[str, Any]:
        ticket = session.toggle_completion(plan_id, day_index, meal_index)
        if ticket is None:
            raise HTTPException(status_code=404, detail="Meal not found")
        meal = session.collection.get_meal(plan_id, day_index, meal_index)
        return {"meal": format_meal_json(meal), "sync": "pending"}

    @app.delete("/api/plans/{plan_id}/days/{day_index}/meals/{meal_id}")
    async def delete_meal(plan_id: str, day_index: int, meal_id: str) -> Dict[str, Any]:
        ticket = session.delete_meal(plan_id, day_index, meal_id)
        if ticket is None:
            raise HTTPException(status_code=404, detail="Meal not found")
        return {"deleted": meal_id, "sync": "pending"}

    @app.get("/api/plans/{plan_id}/days/{day_index}/meals/{meal_index}/alternatives")
    async def list_alternatives(
        plan_id: str,
        day_index: int,
        meal_index: int,
        limit: Optional[int] = Query(default=None),
    ) -> Dict[str, Any]:
        try:
            recipes = await session.fetch_alternatives(plan_id, day_index, meal_index, limit)
        except PlanSyncError as exc:
            raise _http_error(exc) from exc
        return {"alternatives": [format_recipe_json(recipe) for recipe in recipes]}

    @app.post("/api/plans/{plan_id}/days/{day_index}/meals/{meal_index}/swap")
    async def swap_meal(plan_id: str, day_index: int, meal_index: int, request: SwapRequest) -> Dict[str, Any]:
        try:
            ref = RecipeRef(
                recipe_id=request.recipe_id,
                recipe=parse_recipe(request.recipe) if request.recipe is not None else None,
            )
        except (ValueError, ValidationError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        try:
            meal = await session.apply_alternative(plan_id, day_index, meal_index, ref)
        except PlanSyncError as exc:
            raise _http_error(exc) from exc
        return {"meal": format_meal_json(meal)}

    @app.put("/api/plans/{plan_id}/status")
    async def set_status(plan_id: str, request: StatusRequest) -> Dict[str, Any]:
        status = PlanStatus.from_string(request.status)
        if status is None:
            raise HTTPException(status_code=400, detail=f"Unknown status '{request.status}'")
        if session.set_plan_status(plan_id, status) is None:
            raise HTTPException(status_code=404, detail="Meal plan not found")
        return {"plan_id": plan_id, "status": status.value, "sync": "pending"}

    @app.put("/api/plans/{plan_id}/start-date")
    async def set_start_date(plan_id: str, request: StartDateRequest) -> Dict[str, Any]:
        if session.update_start_date(plan_id, request.start_date) is None:
            raise HTTPException(status_code=404, detail="Meal plan not found")
        return {"plan_id": plan_id, "start_date": request.start_date.isoformat(), "sync": "pending"}

    @app.post("/api/reconcile")
    async def reconcile() -> Dict[str, Any]:
        try:
            changed = await session.reconcile()
        except PlanSyncError as exc:
            raise _http_error(exc) from exc
        return {"changed": changed}

    @app.get("/api/sync", response_model=SyncReport)
    async def sync_report() -> SyncReport:
        states = [
            SyncEntry(plan_id=plan_id, meal_id=meal_id, state=state.value)
            for (plan_id, meal_id), state in session.controller.sync_states().items()
        ]
        return SyncReport(
            pending=session.controller.pending_count,
            states=states,
            failures=[outcome.to_dict() for outcome in session.failures],
        )

    return app


def _session_from_env() -> PlanSession:
    config_path = os.environ.get("MEALSYNC_CONFIG")
    settings = SettingsLoader(config_path).load() if config_path else ClientSettings.from_env()
    return PlanSession.from_settings(settings)


if __name__ == "__main__":
    uvicorn.run(create_app(_session_from_env(), load_on_startup=True), host="0.0.0.0", port=8000)
