from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from binpulse.engine import EngineContext
from binpulse.models.schemas import (
    AllRoutesSummary,
    BinTelemetryRecord,
    CollectedBinEvent,
    NewBagBatchRequest,
    NewBinRequest,
    ReconcileCollectionsRequest,
    RouteProgress,
    RouteSummary,
    SelectRouteRequest,
    TelemetryStats,
)

router = APIRouter(prefix="/api")


def _engine(request: Request) -> EngineContext:
    return request.app.state.engine


@router.get("/bins")
async def list_bins(request: Request, owner_id: str | None = Query(default=None)) -> list[BinTelemetryRecord]:
    telemetry = _engine(request).telemetry
    if owner_id is None:
        return telemetry.list_all()
    return telemetry.list_by_owner(owner_id)


@router.get("/bins/stats")
async def bin_stats(request: Request, owner_id: str | None = Query(default=None)) -> TelemetryStats:
    return _engine(request).telemetry.stats_for(owner_id)


@router.post("/bins/refresh")
async def refresh_bins(request: Request) -> dict[str, int]:
    telemetry = _engine(request).telemetry
    telemetry.refresh_all()
    return {"refreshed": sum(1 for record in telemetry.list_all() if not record.is_bag_collection)}


@router.get("/bins/{bin_id}")
async def get_bin(bin_id: str, request: Request) -> dict[str, Any]:
    record = _engine(request).telemetry.get(bin_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Bin not found")
    payload = record.model_dump(mode="json")
    payload["alerts_active"] = bool(record.alerts)
    return payload


@router.post("/bins", status_code=201)
async def add_bin(payload: NewBinRequest, request: Request) -> BinTelemetryRecord:
    return _engine(request).telemetry.add(payload.owner_id, payload.waste_type, payload.location)


@router.post("/bags", status_code=201)
async def add_bags(payload: NewBagBatchRequest, request: Request) -> BinTelemetryRecord:
    return _engine(request).telemetry.add_bag_batch(
        payload.owner_id, payload.bag_type, payload.quantity, payload.location
    )


@router.get("/collections")
async def list_collections(request: Request) -> dict[str, Any]:
    engine = _engine(request)
    engine.tracker.tick()
    log = engine.log
    return {
        "count": len(log),
        "total_weight": log.total_weight,
        "items": [event.model_dump(mode="json") for event in log.events],
    }


@router.post("/collections", status_code=201)
async def record_collection(event: CollectedBinEvent, request: Request) -> CollectedBinEvent:
    _engine(request).tracker.record(event)
    return event


@router.put("/collections")
async def reconcile_collections(payload: ReconcileCollectionsRequest, request: Request) -> dict[str, Any]:
    engine = _engine(request)
    engine.tracker.reconcile_events(payload.remote, payload.local)
    return {"count": len(engine.log), "total_weight": engine.log.total_weight}


@router.delete("/collections/{bin_id}")
async def undo_collection(bin_id: str, request: Request) -> dict[str, Any]:
    engine = _engine(request)
    removed = engine.tracker.undo(bin_id)
    return {"removed": removed is not None, "total_weight": engine.log.total_weight}


@router.get("/routes")
async def list_routes(request: Request) -> list[dict[str, Any]]:
    routes = _engine(request).routes
    return [
        {
            "id": route.id,
            "name": route.name,
            "description": route.description,
            "bins": list(route.bins),
            "center": {"latitude": route.center[0], "longitude": route.center[1]} if route.center else None,
        }
        for route in routes.available_routes()
    ]


@router.get("/routes/{route_id}/summary")
async def route_summary(route_id: str, request: Request) -> RouteSummary:
    return _engine(request).tracker.route_summary(route_id)


@router.get("/routes/{route_id}/progress")
async def progress(route_id: str, request: Request) -> RouteProgress:
    return _engine(request).tracker.progress(route_id)


@router.get("/summary")
async def full_summary(request: Request) -> AllRoutesSummary:
    return _engine(request).tracker.full_summary()


@router.get("/session")
async def session_state(request: Request) -> dict[str, Any]:
    tracker = _engine(request).tracker
    tracker.tick()
    return {
        "window": tracker.window.model_dump() if tracker.window else None,
        "elapsed_time": tracker.elapsed_time,
        "selected_route_id": tracker.selected_route_id,
        "current_route": tracker.current_route_summary().model_dump(),
    }


@router.put("/session/route")
async def select_route(payload: SelectRouteRequest, request: Request) -> RouteSummary:
    tracker = _engine(request).tracker
    if not tracker.select_route(payload.route_id):
        raise HTTPException(status_code=404, detail="Route not found")
    return tracker.current_route_summary()


@router.post("/session/reset")
async def reset_session(request: Request) -> dict[str, Any]:
    engine = _engine(request)
    engine.tracker.window = engine.sessions.reset_for_new_day()
    engine.log.clear()
    engine.tracker.tick()
    return {"window": engine.tracker.window.model_dump(), "elapsed_time": engine.tracker.elapsed_time}
