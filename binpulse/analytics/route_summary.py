from __future__ import annotations

import logging
from collections.abc import Sequence

from binpulse.analytics.statistics import completion_percentage, count_by_status, total_weight
from binpulse.config import RouteCatalog, RouteDefinition
from binpulse.models.schemas import AllRoutesSummary, CollectedBinEvent, RouteProgress, RouteSummary
from binpulse.session.lifecycle import SessionManager

LOGGER = logging.getLogger(__name__)

NO_ROUTE_SELECTED = "No Route Selected"
INVALID_ROUTE = "Invalid Route"


def empty_summary(route_name: str) -> RouteSummary:
    return RouteSummary(
        route_name=route_name,
        route_id=None,
        bins_collected=0,
        total_bins=0,
        completion_percentage=0,
        total_weight=0.0,
        missed_bins=0,
        override_collections=0,
        manual_entries=0,
        elapsed_time="0h 0m",
    )


def filter_by_route(
    events: Sequence[CollectedBinEvent] | None,
    route_id: str | None,
    routes: RouteCatalog,
) -> list[CollectedBinEvent]:
    if not route_id or not events:
        return []
    route = routes.get(route_id)
    if route is None or not isinstance(route.bins, (tuple, list)):
        return []

    members = set(route.bins)
    return [event for event in events if event is not None and event.bin_id in members]


def _summarize(route: RouteDefinition, events: Sequence[CollectedBinEvent], routes: RouteCatalog) -> RouteSummary:
    route_events = filter_by_route(events, route.id, routes)
    LOGGER.debug(
        "Route %s: %d of %d logged events belong to bins %s",
        route.id,
        len(route_events),
        len(events),
        list(route.bins),
    )
    return RouteSummary(
        route_name=route.name,
        route_id=route.id,
        bins_collected=len(route_events),
        total_bins=len(route.bins),
        completion_percentage=completion_percentage(len(route_events), len(route.bins)),
        total_weight=total_weight(route_events),
        missed_bins=count_by_status(route_events, "Missed"),
        override_collections=count_by_status(route_events, "Override Collection"),
        manual_entries=count_by_status(route_events, "Manual Entry - Sensor Failed"),
    )


def summary_for_route(
    events: Sequence[CollectedBinEvent],
    route_id: str | None,
    start_time: int | None,
    routes: RouteCatalog,
    sessions: SessionManager,
) -> RouteSummary:
    if not route_id:
        return empty_summary(NO_ROUTE_SELECTED)
    route = routes.get(route_id)
    if route is None:
        return empty_summary(INVALID_ROUTE)

    summary = _summarize(route, events, routes)
    return summary.model_copy(update={"elapsed_time": sessions.elapsed_time(start_time)})


def summary_for_all_routes(
    events: Sequence[CollectedBinEvent],
    start_time: int | None,
    routes: RouteCatalog,
    sessions: SessionManager,
) -> AllRoutesSummary:
    # Global totals cover the whole log, including bins outside every route.
    return AllRoutesSummary(
        elapsed_time=sessions.elapsed_time(start_time),
        total_bins_collected=len(events),
        total_weight=total_weight(events),
        total_missed_bins=count_by_status(events, "Missed"),
        total_override_collections=count_by_status(events, "Override Collection"),
        total_manual_entries=count_by_status(events, "Manual Entry - Sensor Failed"),
        route_summaries=[_summarize(route, events, routes) for route in routes.available_routes()],
    )


def route_progress(
    route_id: str | None,
    events: Sequence[CollectedBinEvent],
    routes: RouteCatalog,
) -> RouteProgress:
    route = routes.get(route_id)
    if route is None:
        return RouteProgress(collected=0, total=0, percentage=0)

    collected_ids = {event.bin_id for event in events}
    collected = sum(1 for bin_id in route.bins if bin_id in collected_ids)
    return RouteProgress(
        collected=collected,
        total=len(route.bins),
        percentage=completion_percentage(collected, len(route.bins)),
    )
