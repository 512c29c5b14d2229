from __future__ import annotations

import random
from collections.abc import Callable
from datetime import UTC, datetime

from binpulse.analytics.statistics import LOW_BATTERY_THRESHOLD, OVERFLOW_THRESHOLD, round_half_up
from binpulse.config import TelemetryRanges
from binpulse.models.schemas import BinTelemetryRecord, GeoPoint, TelemetryAlert

SIGNAL_LEVELS = ("Excellent", "Good", "Fair", "Poor", "No Signal")
WEAK_SIGNALS = frozenset({"Poor", "No Signal"})

Clock = Callable[[], datetime]


class TelemetryInputError(ValueError):
    pass


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def build_alerts(fill_level: int, battery_level: int, signal_strength: str) -> tuple[TelemetryAlert, ...]:
    alerts: list[TelemetryAlert] = []
    if fill_level > OVERFLOW_THRESHOLD:
        alerts.append(
            TelemetryAlert(
                type="overflow",
                message=f"Bin is overflowing ({fill_level}%)",
                severity="high",
                icon="⚠️",
            )
        )
    if battery_level < LOW_BATTERY_THRESHOLD:
        alerts.append(
            TelemetryAlert(
                type="low_battery",
                message=f"Low battery ({battery_level}%)",
                severity="medium",
                icon="🔋",
            )
        )
    if signal_strength in WEAK_SIGNALS:
        alerts.append(
            TelemetryAlert(
                type="poor_signal",
                message=f"{signal_strength} signal strength",
                severity="medium",
                icon="📶",
            )
        )
    return tuple(alerts)


def resolve_status(fill_level: int) -> str:
    return "OVERFLOWING" if fill_level > OVERFLOW_THRESHOLD else "ACTIVE"


class TelemetryGenerator:
    """Produces simulated sensor readings for a single bin.

    Every reading is clamped to its configured range. Fill level drifts upward
    over the day and temperature runs warmer in daylight hours, but callers
    should only rely on the ranges.
    """

    def __init__(
        self,
        ranges: TelemetryRanges | None = None,
        *,
        rng: random.Random | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.ranges = ranges or TelemetryRanges()
        self._rng = rng or random.Random()
        self._clock = clock or _utc_now

    def now(self) -> datetime:
        return self._clock()

    def _fill_level(self, hour: int) -> int:
        span = self.ranges.fill_level
        base = span.min + self._rng.uniform(0.0, 40.0)
        time_factor = (hour / 24) * 20
        raw = base + time_factor + self._rng.uniform(0.0, 20.0)
        return int(span.clamp(round_half_up(raw)))

    def _battery_level(self) -> int:
        span = self.ranges.battery_level
        raw = span.max - self._rng.uniform(0.0, 30.0)
        if self._rng.random() < 0.1:
            # occasional drained cell
            raw = self._rng.uniform(span.min, span.min + 10.0)
        return int(span.clamp(round_half_up(raw)))

    def _temperature(self, hour: int) -> float:
        span = self.ranges.temperature
        daylight_bonus = 8.0 if 6 < hour < 18 else 0.0
        raw = span.min + daylight_bonus + self._rng.uniform(0.0, 4.0)
        return round(span.clamp(raw), 1)

    def _uniform_int(self, span_name: str) -> int:
        span = getattr(self.ranges, span_name)
        return int(span.clamp(round_half_up(self._rng.uniform(span.min, span.max))))

    def _signal_strength(self) -> str:
        if self._rng.random() < 0.8:
            return SIGNAL_LEVELS[0]
        return self._rng.choice(SIGNAL_LEVELS)

    def generate(
        self,
        bin_id: str,
        owner_id: str,
        waste_type: str,
        location: str | GeoPoint,
    ) -> BinTelemetryRecord:
        if not bin_id:
            raise TelemetryInputError("bin_id is required to generate telemetry")

        now = self.now()
        hour = now.hour
        fill_level = self._fill_level(hour)
        battery_level = self._battery_level()
        signal_strength = self._signal_strength()

        return BinTelemetryRecord(
            bin_id=bin_id,
            owner_id=owner_id,
            waste_type=waste_type,
            location=location,
            fill_level=fill_level,
            battery_level=battery_level,
            temperature=self._temperature(hour),
            humidity=self._uniform_int("humidity"),
            pressure=self._uniform_int("pressure"),
            signal_strength=signal_strength,
            status=resolve_status(fill_level),
            alerts=build_alerts(fill_level, battery_level, signal_strength),
            last_updated=now,
        )
