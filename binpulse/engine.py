from __future__ import annotations

import random
from dataclasses import dataclass

from binpulse.collection.log import CollectionLog
from binpulse.config import AppConfig, RouteCatalog
from binpulse.models.database import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from binpulse.session.daily_reset import DailyResetCoordinator
from binpulse.session.lifecycle import Clock, SessionManager, build_clock
from binpulse.session.tracker import SessionTracker
from binpulse.telemetry.generator import TelemetryGenerator
from binpulse.telemetry.store import TelemetryStore


@dataclass(slots=True)
class EngineContext:
    """Single owner of every engine component; pass it around instead of globals."""

    telemetry: TelemetryStore
    sessions: SessionManager
    coordinator: DailyResetCoordinator
    log: CollectionLog
    tracker: SessionTracker
    routes: RouteCatalog
    storage: KeyValueStore

    async def aclose(self) -> None:
        self.tracker.stop()
        await self.telemetry.aclose()
        if isinstance(self.storage, SqliteKeyValueStore):
            self.storage.close()


def build_engine(
    config: AppConfig,
    *,
    storage: KeyValueStore | None = None,
    clock: Clock | None = None,
) -> EngineContext:
    if storage is None:
        if config.session.storage_path is not None:
            sqlite_store = SqliteKeyValueStore(config.session.storage_path)
            sqlite_store.initialize()
            storage = sqlite_store
        else:
            storage = MemoryKeyValueStore()

    wall_clock = clock or build_clock(config.session.timezone)
    generator = TelemetryGenerator(
        config.telemetry.ranges,
        rng=random.Random(config.telemetry.seed),
        clock=wall_clock,
    )
    telemetry = TelemetryStore(generator, bin_id_prefix=config.telemetry.bin_id_prefix)

    sessions = SessionManager(storage, clock=wall_clock)
    coordinator = DailyResetCoordinator(sessions)
    log = CollectionLog()
    tracker = SessionTracker(sessions, coordinator, log, config.routes)

    return EngineContext(
        telemetry=telemetry,
        sessions=sessions,
        coordinator=coordinator,
        log=log,
        tracker=tracker,
        routes=config.routes,
        storage=storage,
    )
