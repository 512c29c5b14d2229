import asyncio

from binpulse.collection.log import CollectionLog
from binpulse.config import RouteCatalog, RouteDefinition
from binpulse.models.database import MemoryKeyValueStore
from binpulse.models.schemas import CollectedBinEvent
from binpulse.session.daily_reset import DailyResetCoordinator
from binpulse.session.lifecycle import SessionManager
from binpulse.session.tracker import SessionTracker


def _tracker(clock) -> SessionTracker:
    sessions = SessionManager(MemoryKeyValueStore(), clock=clock)
    routes = RouteCatalog([RouteDefinition(id="R1", name="Route One", bins=("BIN-001", "BIN-002"))])
    return SessionTracker(sessions, DailyResetCoordinator(sessions), CollectionLog(), routes)


def test_tick_updates_elapsed_time(clock) -> None:
    tracker = _tracker(clock)
    tracker.start()

    clock.advance(minutes=135)
    assert tracker.tick() is False
    assert tracker.elapsed_time == "2h 15m"


def test_midnight_rollover_clears_log_and_window(clock) -> None:
    tracker = _tracker(clock)
    first = tracker.start()
    tracker.log.append(CollectedBinEvent(bin_id="BIN-001", weight=12))

    clock.advance(days=1)
    assert tracker.tick() is True

    assert len(tracker.log) == 0
    assert tracker.log.total_weight == 0
    assert tracker.window is not None
    assert tracker.window.start_time > first.start_time
    assert tracker.window.date == "2024-03-15"
    assert tracker.tick() is False


def test_route_selection_drives_current_summary(clock) -> None:
    tracker = _tracker(clock)
    tracker.start()
    tracker.log.append(CollectedBinEvent(bin_id="BIN-002", weight=3))

    assert tracker.current_route_summary().route_name == "No Route Selected"
    assert tracker.select_route("nope") is False
    assert tracker.select_route("R1") is True

    summary = tracker.current_route_summary()
    assert summary.route_name == "Route One"
    assert summary.completion_percentage == 50
    assert tracker.full_summary().total_weight == 3


def test_stop_unregisters_log_reset(clock) -> None:
    tracker = _tracker(clock)
    tracker.start()
    tracker.start()
    assert len(tracker.coordinator.callbacks) == 1

    tracker.stop()
    assert tracker.coordinator.callbacks == ()


def test_summaries_after_midnight_drop_previous_day_without_tick(clock) -> None:
    tracker = _tracker(clock)
    first = tracker.start()
    tracker.select_route("R1")
    tracker.log.append(CollectedBinEvent(bin_id="BIN-001", weight=12))

    clock.advance(days=1)
    overall = tracker.full_summary()

    assert overall.total_bins_collected == 0
    assert overall.total_weight == 0
    assert overall.route_summaries[0].completion_percentage == 0
    assert tracker.window.start_time > first.start_time
    assert tracker.window.date == "2024-03-15"


def test_route_readers_reset_stale_window(clock) -> None:
    tracker = _tracker(clock)
    tracker.start()
    tracker.log.append(CollectedBinEvent(bin_id="BIN-002", weight=4))

    clock.advance(days=1)

    assert tracker.route_summary("R1").bins_collected == 0
    assert tracker.progress("R1").collected == 0


def test_record_after_midnight_lands_in_new_day(clock) -> None:
    tracker = _tracker(clock)
    tracker.start()
    tracker.record(CollectedBinEvent(bin_id="BIN-001", weight=12))

    clock.advance(days=1)
    tracker.record(CollectedBinEvent(bin_id="BIN-002", weight=3))

    assert [event.bin_id for event in tracker.log.events] == ["BIN-002"]
    assert tracker.full_summary().total_weight == 3


def test_reconcile_events_replaces_log(clock) -> None:
    tracker = _tracker(clock)
    tracker.start()
    tracker.record(CollectedBinEvent(bin_id="BIN-001", weight=1))

    tracker.reconcile_events(
        [CollectedBinEvent(bin_id="BIN-001", weight=10), CollectedBinEvent(bin_id="BIN-002", weight=5)],
        [CollectedBinEvent(bin_id="BIN-002", weight=6, status="Override Collection")],
    )

    assert len(tracker.log) == 2
    assert tracker.log.total_weight == 16


def test_run_forever_polls_until_stopped(clock) -> None:
    tracker = _tracker(clock)
    tracker.start()
    tracker.log.append(CollectedBinEvent(bin_id="BIN-001", weight=12))
    clock.advance(days=1)

    async def scenario() -> None:
        task = asyncio.create_task(tracker.run_forever(0.01))
        await asyncio.sleep(0.05)
        tracker.stop()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())
    assert len(tracker.log) == 0
    assert tracker.window.date == "2024-03-15"
