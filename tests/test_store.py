import asyncio
import random

import pytest
from pydantic import ValidationError

from binpulse.telemetry.generator import TelemetryGenerator, TelemetryInputError
from binpulse.telemetry.store import TelemetryStore


def _store(clock) -> TelemetryStore:
    return TelemetryStore(TelemetryGenerator(rng=random.Random(3), clock=clock))


def test_add_allocates_sequential_unique_ids(clock) -> None:
    store = _store(clock)
    first = store.add("RES-001", "General", "Front Yard")
    second = store.add("RES-002", "Organic", "Kitchen")

    assert first.bin_id == "BIN-001"
    assert second.bin_id == "BIN-002"
    assert len(store.list_all()) == 2


def test_add_grows_store_by_exactly_one(clock) -> None:
    store = _store(clock)
    store.seed_owner("RES-001")
    before = {record.bin_id for record in store.list_all()}

    record = store.add("RES-001", "Glass", "Garage")

    assert len(store.list_all()) == len(before) + 1
    assert record.bin_id not in before


def test_seed_owner_creates_household_bins(clock) -> None:
    store = _store(clock)
    records = store.seed_owner("RES-001")

    assert [record.waste_type for record in records] == ["General", "Recyclable", "Organic"]
    assert [record.location for record in records] == ["Front Yard", "Back Yard", "Kitchen"]


def test_bag_batch_is_flagged_and_uses_time_based_id(clock) -> None:
    store = _store(clock)
    first = store.add_bag_batch("RES-001", "Recyclable", 2, "Porch")
    second = store.add_bag_batch("RES-001", "Recyclable", 1, "Porch")

    assert first.is_bag_collection
    assert first.fill_level == 0
    assert first.alerts == ()
    assert first.waste_type == "Recyclable Bags (2 packs)"
    assert first.bin_id.startswith("BAGS-")
    assert first.bin_id != second.bin_id
    assert store.add("RES-001", "General", "Yard").bin_id == "BIN-001"


def test_bag_batch_requires_positive_quantity(clock) -> None:
    with pytest.raises(TelemetryInputError):
        _store(clock).add_bag_batch("RES-001", "General", 0, "Porch")


def test_refresh_updates_bins_but_not_bags(clock) -> None:
    store = _store(clock)
    store.seed_owner("RES-001")
    bag = store.add_bag_batch("RES-001", "General", 3, "Porch")
    before = {record.bin_id: record for record in store.list_all()}

    clock.advance(seconds=5)
    store.refresh_all()

    for record in store.list_all():
        if record.is_bag_collection:
            assert record == before[record.bin_id]
        else:
            assert record.last_updated != before[record.bin_id].last_updated
            assert record.owner_id == before[record.bin_id].owner_id
            assert record.waste_type == before[record.bin_id].waste_type
    assert store.get(bag.bin_id) == bag


def test_every_mutation_broadcasts_full_snapshot_once(clock) -> None:
    store = _store(clock)
    sizes: list[int] = []
    store.subscribe(lambda snapshot: sizes.append(len(snapshot)))

    store.add("RES-001", "General", "Yard")
    store.add_bag_batch("RES-001", "General", 1, "Porch")
    store.refresh_all()
    store.refresh_all()

    assert sizes == [1, 2, 2, 2]


def test_readers_cannot_mutate_records(clock) -> None:
    store = _store(clock)
    record = store.add("RES-001", "General", "Yard")

    with pytest.raises(ValidationError):
        record.fill_level = 5  # type: ignore[misc]

    listing = store.list_all()
    listing.clear()
    assert len(store.list_all()) == 1


def test_unknown_owner_and_empty_stats(clock) -> None:
    store = _store(clock)
    assert store.list_by_owner("nobody") == []

    stats = store.stats_for("nobody")
    assert stats.total_bins == 0
    assert stats.average_fill_level == 0
    assert stats.average_battery_level == 0


def test_stats_for_owner(clock) -> None:
    store = _store(clock)
    store.seed_owner("RES-001")
    store.add("RES-002", "General", "Yard")

    owner_stats = store.stats_for("RES-001")
    overall = store.stats_for(None)
    records = store.list_by_owner("RES-001")

    assert owner_stats.total_bins == 3
    assert overall.total_bins == 4
    assert owner_stats.overflowing_bins == sum(1 for r in records if r.fill_level > 90)
    assert owner_stats.active_bins + owner_stats.overflowing_bins == 3
    assert min(r.fill_level for r in records) <= owner_stats.average_fill_level <= max(r.fill_level for r in records)


def test_periodic_updates_refresh_and_stop(clock) -> None:
    store = _store(clock)
    store.add("RES-001", "General", "Yard")
    ticks: list[int] = []
    store.subscribe(lambda snapshot: ticks.append(len(snapshot)))

    async def scenario() -> None:
        store.start_updates(0.01)
        await asyncio.sleep(0.1)
        store.stop_updates()
        seen = len(ticks)
        await asyncio.sleep(0.05)
        assert len(ticks) == seen
        store.stop_updates()

    asyncio.run(scenario())
    assert len(ticks) >= 2
    assert not store.updating


def test_restarting_updates_replaces_previous_task(clock) -> None:
    store = _store(clock)

    async def scenario() -> None:
        first = store.start_updates(10)
        second = store.start_updates(10)
        await asyncio.sleep(0)
        assert first.cancelled() or first.cancelling()
        assert not second.done()
        await store.aclose()
        assert second.done()

    asyncio.run(scenario())


def test_refresh_survives_failing_listener(clock) -> None:
    store = _store(clock)
    store.add("RES-001", "General", "Yard")
    good: list[int] = []

    def bad(snapshot) -> None:
        raise ValueError("bad listener")

    store.subscribe(bad)
    store.subscribe(lambda snapshot: good.append(1))

    async def scenario() -> None:
        store.start_updates(0.01)
        await asyncio.sleep(0.08)
        await store.aclose()

    asyncio.run(scenario())
    assert len(good) >= 2
