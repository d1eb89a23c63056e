"""
planner_api.py -- FastAPI application over the lesson planner core.

Runs on PLANNER_API_PORT (default 3002). One AggregationEngine and one
CurriculumTagStore per class, created on first use and held on app.state.
Every response uses the {success, data, error} envelope; unknown classes,
lessons and plans are 404s, invalid bodies are 422s.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from planner import config
from planner.aggregator import AggregationEngine
from planner.converter import plan_lesson_id
from planner.curriculum import CurriculumTagStore
from planner.gateway import PersistenceGateway
from planner.models import SHEETS, LessonPlan, LessonSnapshot, RemoteWriteResult

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("planner_api")

API_VERSION: str = "0.1.0"


# ---------------------------------------------------------------------------
# Request / response bodies
# ---------------------------------------------------------------------------

class EngineResponse(BaseModel):
    """Standard API response envelope."""
    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    success: bool
    version: str = API_VERSION


class ImportRequest(BaseModel):
    """Raw sheet rows, header row first."""
    rows: list[list[Any]] = Field(..., description="Rows as exported from the activity sheet")


class TitleRequest(BaseModel):
    title: str = Field(..., min_length=1)


class StatementRequest(BaseModel):
    statement: str = Field(..., min_length=1, description="An 'Area: Detail' curriculum statement")


class StatementsRequest(BaseModel):
    statements: list[str]


class LibraryActivityRequest(BaseModel):
    """Names an activity of the class library by its (name, category) pair."""
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Per-class state
# ---------------------------------------------------------------------------

def _check_sheet(sheet: str) -> None:
    if sheet not in SHEETS:
        raise HTTPException(status_code=404, detail=f"Unknown class: {sheet}")


async def get_engine(request: Request, sheet: str) -> AggregationEngine:
    """The class's engine, loaded on first use."""
    _check_sheet(sheet)
    engines: dict[str, AggregationEngine] = request.app.state.engines
    engine = engines.get(sheet)
    if engine is None:
        engine = AggregationEngine(request.app.state.gateway, sheet)
        engines[sheet] = engine
        await engine.load()
    return engine


async def get_tag_store(request: Request, sheet: str) -> CurriculumTagStore:
    _check_sheet(sheet)
    stores: dict[str, CurriculumTagStore] = request.app.state.tag_stores
    store = stores.get(sheet)
    if store is None:
        store = CurriculumTagStore(request.app.state.gateway, sheet)
        stores[sheet] = store
        await store.load()
    return store


def snapshot_payload(snapshot: LessonSnapshot) -> dict[str, Any]:
    """Merged view in the camelCase shape the browser client reads."""
    return {
        "sheet": snapshot.sheet.to_wire(),
        "state": snapshot.state.value,
        "origin": snapshot.origin.value if snapshot.origin else None,
        "generation": snapshot.generation,
        "lessonNumbers": snapshot.lesson_ids,
        "allLessonsData": {k: v.to_wire() for k, v in snapshot.lesson_data.items()},
        "sources": {k: v.to_wire() for k, v in snapshot.sources.items()},
        "teachingUnits": snapshot.teaching_units,
    }


def remote_payload(result: Optional[RemoteWriteResult]) -> dict[str, Any] | None:
    return result.model_dump() if result is not None else None


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

def create_app(gateway: Optional[PersistenceGateway] = None) -> FastAPI:
    """
    Build the API. With no gateway, one is created from the environment at
    startup and closed at shutdown; a passed-in gateway is left open.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owns_gateway = app.state.gateway is None
        if owns_gateway:
            app.state.gateway = PersistenceGateway.from_config()
        app.state.engines = {}
        app.state.tag_stores = {}
        logger.info(
            "Planner API started (cache=%s, remote=%s)",
            app.state.gateway.local.root,
            "on" if app.state.gateway.remote is not None else "off",
        )
        yield
        pending = len(app.state.gateway.outbox)
        if pending:
            logger.warning("Shutting down with %d unsynced remote writes", pending)
        if owns_gateway:
            await app.state.gateway.aclose()
            app.state.gateway = None
        logger.info("Planner API shut down")

    app = FastAPI(
        title="Lesson Planner API",
        description="Merged lesson view, lesson plans and curriculum tags per class",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(success=True)

    @app.get("/sheets", response_model=EngineResponse)
    async def list_sheets() -> EngineResponse:
        """List the built-in classes."""
        sheets = [info.to_wire() for info in SHEETS.values()]
        return EngineResponse(success=True, data={"sheets": sheets, "default": config.DEFAULT_SHEET})

    # -- lessons --------------------------------------------------------------

    @app.get("/sheets/{sheet}/lessons", response_model=EngineResponse)
    async def get_lessons(sheet: str, request: Request) -> EngineResponse:
        engine = await get_engine(request, sheet)
        return EngineResponse(success=True, data=snapshot_payload(engine.snapshot()))

    @app.post("/sheets/{sheet}/refresh", response_model=EngineResponse)
    async def refresh_lessons(sheet: str, request: Request) -> EngineResponse:
        engine = await get_engine(request, sheet)
        snapshot = await engine.refresh()
        return EngineResponse(success=True, data=snapshot_payload(snapshot))

    @app.post("/sheets/{sheet}/import", response_model=EngineResponse)
    async def import_sheet(sheet: str, body: ImportRequest, request: Request) -> EngineResponse:
        """Replace the class's base lessons with uploaded sheet rows."""
        engine = await get_engine(request, sheet)
        summary = await engine.import_rows(body.rows)
        data = summary.model_dump(mode="json")
        if summary.degraded:
            return EngineResponse(success=False, data=data, error="No usable lessons found in the uploaded rows")
        return EngineResponse(success=True, data=data)

    @app.put("/sheets/{sheet}/lessons/{lesson_id}/title", response_model=EngineResponse)
    async def set_lesson_title(sheet: str, lesson_id: str, body: TitleRequest, request: Request) -> EngineResponse:
        engine = await get_engine(request, sheet)
        if engine.lesson(lesson_id) is None:
            raise HTTPException(status_code=404, detail=f"Unknown lesson: {lesson_id}")
        result = await engine.set_title(lesson_id, body.title)
        lesson = engine.lesson(lesson_id)
        return EngineResponse(
            success=True,
            data={"lessonId": lesson_id, "title": lesson.title if lesson else body.title, "remote": remote_payload(result)},
        )

    @app.post("/sheets/{sheet}/lessons/{lesson_id}/eyfs", response_model=EngineResponse)
    async def add_lesson_tag(sheet: str, lesson_id: str, body: StatementRequest, request: Request) -> EngineResponse:
        engine = await get_engine(request, sheet)
        if engine.lesson(lesson_id) is None:
            raise HTTPException(status_code=404, detail=f"Unknown lesson: {lesson_id}")
        result = await engine.add_tag(lesson_id, body.statement)
        lesson = engine.lesson(lesson_id)
        return EngineResponse(
            success=True,
            data={"lessonId": lesson_id, "eyfsStatements": lesson.eyfs_statements, "remote": remote_payload(result)},
        )

    @app.delete("/sheets/{sheet}/lessons/{lesson_id}/eyfs", response_model=EngineResponse)
    async def remove_lesson_tag(
        sheet: str,
        lesson_id: str,
        request: Request,
        statement: str = Query(..., min_length=1),
    ) -> EngineResponse:
        engine = await get_engine(request, sheet)
        if engine.lesson(lesson_id) is None:
            raise HTTPException(status_code=404, detail=f"Unknown lesson: {lesson_id}")
        result = await engine.remove_tag(lesson_id, statement)
        lesson = engine.lesson(lesson_id)
        return EngineResponse(
            success=True,
            data={"lessonId": lesson_id, "eyfsStatements": lesson.eyfs_statements, "remote": remote_payload(result)},
        )

    @app.get("/sheets/{sheet}/library", response_model=EngineResponse)
    async def get_library(sheet: str, request: Request) -> EngineResponse:
        """Unique activities across the class's merged lessons."""
        engine = await get_engine(request, sheet)
        activities = [a.to_wire() for a in engine.library()]
        return EngineResponse(success=True, data={"activities": activities, "total": len(activities)})

    # -- plans ------------------------------------------------------------------

    @app.get("/sheets/{sheet}/plans", response_model=EngineResponse)
    async def list_plans(sheet: str, request: Request) -> EngineResponse:
        engine = await get_engine(request, sheet)
        plans = [p.to_wire() for p in engine.plans()]
        return EngineResponse(success=True, data={"plans": plans, "total": len(plans)})

    @app.post("/sheets/{sheet}/plans", response_model=EngineResponse)
    async def save_plan(sheet: str, plan: LessonPlan, request: Request) -> EngineResponse:
        """Create or update a plan; it replaces the lesson it is linked to."""
        engine = await get_engine(request, sheet)
        if plan.class_name != sheet:
            raise HTTPException(
                status_code=422,
                detail=f"Plan belongs to class {plan.class_name}, not {sheet}",
            )
        await engine.save_plan(plan)
        return EngineResponse(success=True, data={"plan": plan.to_wire(), "lessonId": plan_lesson_id(plan)})

    @app.delete("/sheets/{sheet}/plans/{plan_id}", response_model=EngineResponse)
    async def delete_plan(sheet: str, plan_id: str, request: Request) -> EngineResponse:
        engine = await get_engine(request, sheet)
        if not any(p.id == plan_id for p in engine.plans()):
            raise HTTPException(status_code=404, detail=f"Unknown plan: {plan_id}")
        await engine.delete_plan(plan_id)
        return EngineResponse(success=True, data={"planId": plan_id})

    @app.post("/sheets/{sheet}/plans/{plan_id}/activities", response_model=EngineResponse)
    async def add_plan_activity(
        sheet: str, plan_id: str, body: LibraryActivityRequest, request: Request,
    ) -> EngineResponse:
        """Copy a library activity into a plan."""
        engine = await get_engine(request, sheet)
        if not any(p.id == plan_id for p in engine.plans()):
            raise HTTPException(status_code=404, detail=f"Unknown plan: {plan_id}")
        plan = await engine.add_library_activity(plan_id, body.name, body.category)
        if plan is None:
            raise HTTPException(status_code=404, detail=f"Unknown activity: {body.name} ({body.category})")
        return EngineResponse(success=True, data={"plan": plan.to_wire(), "lessonId": plan_lesson_id(plan)})

    # -- curriculum statements -----------------------------------------------------

    @app.get("/sheets/{sheet}/eyfs", response_model=EngineResponse)
    async def get_statements(sheet: str, request: Request) -> EngineResponse:
        store = await get_tag_store(request, sheet)
        return EngineResponse(
            success=True,
            data={"allStatements": store.statements, "structuredStatements": store.structured},
        )

    @app.put("/sheets/{sheet}/eyfs", response_model=EngineResponse)
    async def replace_statements(sheet: str, body: StatementsRequest, request: Request) -> EngineResponse:
        store = await get_tag_store(request, sheet)
        result = await store.replace_all(body.statements)
        return EngineResponse(
            success=True,
            data={
                "allStatements": store.statements,
                "structuredStatements": store.structured,
                "remote": remote_payload(result),
            },
        )

    @app.post("/sheets/{sheet}/eyfs/statement", response_model=EngineResponse)
    async def add_statement(sheet: str, body: StatementRequest, request: Request) -> EngineResponse:
        store = await get_tag_store(request, sheet)
        result = await store.add_statement(body.statement)
        return EngineResponse(
            success=True,
            data={
                "allStatements": store.statements,
                "structuredStatements": store.structured,
                "remote": remote_payload(result),
            },
        )

    @app.delete("/sheets/{sheet}/eyfs/statement", response_model=EngineResponse)
    async def remove_statement(
        sheet: str,
        request: Request,
        statement: str = Query(..., min_length=1),
    ) -> EngineResponse:
        store = await get_tag_store(request, sheet)
        result = await store.remove_statement(statement)
        return EngineResponse(
            success=True,
            data={
                "allStatements": store.statements,
                "structuredStatements": store.structured,
                "remote": remote_payload(result),
            },
        )

    # -- sync ------------------------------------------------------------------------

    @app.post("/outbox/flush", response_model=EngineResponse)
    async def flush_outbox(request: Request) -> EngineResponse:
        """Retry remote writes that failed earlier."""
        results = await request.app.state.gateway.flush_outbox()
        return EngineResponse(
            success=all(r.ok for r in results),
            data={"results": [r.model_dump() for r in results], "pending": len(request.app.state.gateway.outbox)},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("webapi.planner_api:app", host="0.0.0.0", port=config.API_PORT, reload=True)
