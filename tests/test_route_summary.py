import pytest

from binpulse.analytics.route_summary import (
    filter_by_route,
    route_progress,
    summary_for_all_routes,
    summary_for_route,
)
from binpulse.config import RouteCatalog, RouteDefinition
from binpulse.models.database import MemoryKeyValueStore
from binpulse.models.schemas import CollectedBinEvent
from binpulse.session.lifecycle import SessionManager, to_epoch_ms


@pytest.fixture
def routes() -> RouteCatalog:
    return RouteCatalog(
        [
            RouteDefinition(id="R1", name="Route One", bins=("BIN-001", "BIN-002")),
            RouteDefinition(id="R2", name="Route Two", bins=("BIN-004", "BIN-005", "BIN-006")),
            RouteDefinition(id="EMPTY", name="Unstaffed", bins=()),
        ]
    )


@pytest.fixture
def sessions(clock) -> SessionManager:
    return SessionManager(MemoryKeyValueStore(), clock=clock)


def _events() -> list[CollectedBinEvent]:
    return [
        CollectedBinEvent(bin_id="BIN-001", weight=10, status="Collected"),
        CollectedBinEvent(bin_id="BIN-003", weight=5, status="Collected"),
    ]


def test_route_and_global_scenario(routes, sessions, clock) -> None:
    start = to_epoch_ms(clock.current)
    events = _events()

    route = summary_for_route(events, "R1", start, routes, sessions)
    overall = summary_for_all_routes(events, start, routes, sessions)

    assert route.bins_collected == 1
    assert route.total_weight == 10
    assert route.completion_percentage == 50
    assert route.elapsed_time == "0h 0m"
    assert overall.total_bins_collected == 2
    assert overall.total_weight == 15
    assert sum(summary.bins_collected for summary in overall.route_summaries) == 1


def test_filter_by_route_only_returns_members(routes) -> None:
    events = _events() + [CollectedBinEvent(bin_id="BIN-002", weight=1)]

    assert [event.bin_id for event in filter_by_route(events, "R1", routes)] == ["BIN-001", "BIN-002"]
    assert filter_by_route(events, "nope", routes) == []
    assert filter_by_route(events, None, routes) == []
    assert filter_by_route(None, "R1", routes) == []


def test_unknown_and_unselected_routes(routes, sessions) -> None:
    invalid = summary_for_route(_events(), "nope", None, routes, sessions)
    unselected = summary_for_route(_events(), None, None, routes, sessions)

    assert invalid.route_name == "Invalid Route"
    assert invalid.bins_collected == 0
    assert invalid.total_weight == 0
    assert unselected.route_name == "No Route Selected"


def test_zero_bin_route_has_zero_completion(routes, sessions) -> None:
    summary = summary_for_route(_events(), "EMPTY", None, routes, sessions)

    assert summary.total_bins == 0
    assert summary.completion_percentage == 0


def test_status_counters_and_route_order(routes, sessions, clock) -> None:
    events = [
        CollectedBinEvent(bin_id="BIN-004", weight=0, status="Missed"),
        CollectedBinEvent(bin_id="BIN-005", weight=8, status="Override Collection"),
        CollectedBinEvent(bin_id="BIN-006", weight=25, status="Manual Entry - Sensor Failed"),
        CollectedBinEvent(bin_id="BIN-099", weight=0, status="Missed"),
    ]
    start = to_epoch_ms(clock.advance(minutes=-75))
    clock.advance(minutes=75)

    overall = summary_for_all_routes(events, start, routes, sessions)
    route_two = overall.route_summaries[1]

    assert [summary.route_id for summary in overall.route_summaries] == ["R1", "R2", "EMPTY"]
    assert overall.elapsed_time == "1h 15m"
    assert overall.total_missed_bins == 2
    assert route_two.missed_bins == 1
    assert route_two.override_collections == 1
    assert route_two.manual_entries == 1
    assert route_two.completion_percentage == 100
    assert route_two.elapsed_time is None


def test_route_progress(routes) -> None:
    progress = route_progress("R2", [CollectedBinEvent(bin_id="BIN-004", weight=1)], routes)

    assert (progress.collected, progress.total, progress.percentage) == (1, 3, 33)
    assert route_progress("nope", [], routes).total == 0
