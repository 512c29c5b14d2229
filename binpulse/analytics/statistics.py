from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from binpulse.models.schemas import BinTelemetryRecord, CollectedBinEvent, TelemetryStats

OVERFLOW_THRESHOLD = 90
LOW_BATTERY_THRESHOLD = 20


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def completion_percentage(collected: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(collected / total * 100)


def total_weight(events: Iterable[CollectedBinEvent]) -> float:
    return math.fsum(event.weight for event in events)


def count_by_status(events: Iterable[CollectedBinEvent], status: str) -> int:
    return sum(1 for event in events if event.status == status)


def _average(values: Sequence[float]) -> int:
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def telemetry_stats(records: Sequence[BinTelemetryRecord]) -> TelemetryStats:
    return TelemetryStats(
        total_bins=len(records),
        active_bins=sum(1 for record in records if record.status == "ACTIVE"),
        overflowing_bins=sum(1 for record in records if record.fill_level > OVERFLOW_THRESHOLD),
        low_battery_bins=sum(1 for record in records if record.battery_level < LOW_BATTERY_THRESHOLD),
        average_fill_level=_average([record.fill_level for record in records]),
        average_battery_level=_average([record.battery_level for record in records]),
    )
