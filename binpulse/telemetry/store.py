from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress

from binpulse.analytics.statistics import telemetry_stats
from binpulse.models.schemas import BinTelemetryRecord, GeoPoint, TelemetryStats
from binpulse.telemetry.broadcast import BroadcastBus, Snapshot, Subscription, TelemetryListener
from binpulse.telemetry.generator import TelemetryGenerator, TelemetryInputError

LOGGER = logging.getLogger(__name__)

DEFAULT_HOUSEHOLD_BINS: tuple[tuple[str, str], ...] = (
    ("General", "Front Yard"),
    ("Recyclable", "Back Yard"),
    ("Organic", "Kitchen"),
)


class TelemetryStore:
    """Authoritative in-memory set of bin telemetry records keyed by bin id.

    Every mutation (add, add_bag_batch, refresh_all) publishes the full
    snapshot to the bus once, after the mutation is complete.
    """

    def __init__(
        self,
        generator: TelemetryGenerator | None = None,
        *,
        bus: BroadcastBus | None = None,
        bin_id_prefix: str = "BIN-",
    ) -> None:
        self.generator = generator or TelemetryGenerator()
        self.bus = bus or BroadcastBus()
        self.bin_id_prefix = bin_id_prefix
        self._records: dict[str, BinTelemetryRecord] = {}
        self._update_task: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, bin_id: object) -> bool:
        return bin_id in self._records

    def _snapshot(self) -> Snapshot:
        return tuple(self._records.values())

    def _broadcast(self) -> None:
        self.bus.publish(self._snapshot())

    def _next_bin_id(self) -> str:
        index = 1
        while f"{self.bin_id_prefix}{index:03d}" in self._records:
            index += 1
        return f"{self.bin_id_prefix}{index:03d}"

    def _next_bag_id(self) -> str:
        stamp = int(self.generator.now().timestamp() * 1000)
        while f"BAGS-{stamp}" in self._records:
            stamp += 1
        return f"BAGS-{stamp}"

    def subscribe(self, listener: TelemetryListener | Callable[[Snapshot], object]) -> Subscription:
        return self.bus.subscribe(listener)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.bus.unsubscribe(subscription)

    def add(self, owner_id: str, waste_type: str, location: str | GeoPoint) -> BinTelemetryRecord:
        bin_id = self._next_bin_id()
        record = self.generator.generate(bin_id, owner_id, waste_type, location)
        self._records[bin_id] = record
        LOGGER.info("Added bin %s for owner %s (%s)", bin_id, owner_id, waste_type)
        self._broadcast()
        return record

    def add_bag_batch(
        self,
        owner_id: str,
        bag_type: str,
        quantity: int,
        location: str | GeoPoint,
    ) -> BinTelemetryRecord:
        if quantity < 1:
            raise TelemetryInputError(f"bag quantity must be at least 1, got {quantity}")

        bin_id = self._next_bag_id()
        record = BinTelemetryRecord(
            bin_id=bin_id,
            owner_id=owner_id,
            waste_type=f"{bag_type} Bags ({quantity} packs)",
            location=location,
            fill_level=0,
            battery_level=100,
            temperature=20.0,
            humidity=50,
            pressure=1013,
            signal_strength="Excellent",
            status="ACTIVE",
            alerts=(),
            last_updated=self.generator.now(),
            is_bag_collection=True,
            bag_type=bag_type,
            bag_quantity=quantity,
        )
        self._records[bin_id] = record
        LOGGER.info("Added %d %s bag pack(s) for owner %s as %s", quantity, bag_type, owner_id, bin_id)
        self._broadcast()
        return record

    def seed_owner(self, owner_id: str) -> list[BinTelemetryRecord]:
        return [self.add(owner_id, waste_type, location) for waste_type, location in DEFAULT_HOUSEHOLD_BINS]

    def refresh_all(self) -> None:
        for bin_id, record in list(self._records.items()):
            if record.is_bag_collection:
                continue
            self._records[bin_id] = self.generator.generate(
                bin_id, record.owner_id, record.waste_type, record.location
            )
        self._broadcast()

    def get(self, bin_id: str) -> BinTelemetryRecord | None:
        return self._records.get(bin_id)

    def list_all(self) -> list[BinTelemetryRecord]:
        return list(self._records.values())

    def list_by_owner(self, owner_id: str) -> list[BinTelemetryRecord]:
        return [record for record in self._records.values() if record.owner_id == owner_id]

    def stats_for(self, owner_id: str | None = None) -> TelemetryStats:
        records = self.list_all() if owner_id is None else self.list_by_owner(owner_id)
        return telemetry_stats(records)

    @property
    def updating(self) -> bool:
        return self._update_task is not None and not self._update_task.done()

    async def _run_updates(self, interval_seconds: float) -> None:
        LOGGER.info("Telemetry updates started every %.1fs for %d bins", interval_seconds, len(self))
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.refresh_all()
            except Exception:
                LOGGER.exception("Telemetry refresh failed")

    def start_updates(self, interval_seconds: float = 5.0) -> asyncio.Task[None]:
        """Arm the periodic refresh on the running loop, replacing any armed task."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.stop_updates()
        self._update_task = asyncio.get_running_loop().create_task(self._run_updates(interval_seconds))
        return self._update_task

    def stop_updates(self) -> None:
        task, self._update_task = self._update_task, None
        if task is not None and not task.done():
            task.cancel()
            LOGGER.info("Telemetry updates stopped")

    async def aclose(self) -> None:
        task = self._update_task
        self.stop_updates()
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task
        self.bus.clear()
