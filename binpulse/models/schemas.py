from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

AlertTypeLiteral = Literal["overflow", "low_battery", "poor_signal"]
SeverityLiteral = Literal["high", "medium", "low"]
SignalStrengthLiteral = Literal["Excellent", "Good", "Fair", "Poor", "No Signal"]
BinStatusLiteral = Literal["ACTIVE", "DAMAGED", "MAINTENANCE", "LOST", "OVERFLOWING"]
CollectionStatusLiteral = Literal[
    "Collected",
    "Missed",
    "Override Collection",
    "Manual Entry - Sensor Failed",
]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float


class TelemetryAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: AlertTypeLiteral
    message: str
    severity: SeverityLiteral
    icon: str


class BinTelemetryRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    bin_id: str
    owner_id: str
    waste_type: str
    location: str | GeoPoint
    fill_level: int = Field(ge=0, le=100)
    battery_level: int = Field(ge=0, le=100)
    temperature: float
    humidity: int
    pressure: int
    signal_strength: SignalStrengthLiteral
    status: BinStatusLiteral
    alerts: tuple[TelemetryAlert, ...] = ()
    last_updated: datetime
    is_bag_collection: bool = False
    bag_type: str | None = None
    bag_quantity: int | None = None


class TelemetryStats(BaseModel):
    total_bins: int
    active_bins: int
    overflowing_bins: int
    low_battery_bins: int
    average_fill_level: int
    average_battery_level: int


class SessionWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_time: int
    date: str
    is_new_session: bool = False


class CollectedBinEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    bin_id: str = Field(min_length=1)
    weight: float = Field(default=0.0, ge=0)
    status: CollectionStatusLiteral = "Collected"
    timestamp: datetime = Field(default_factory=_utc_now)
    location: str | None = None
    fill_level: float | None = None
    reason: str | None = None


class RouteSummary(BaseModel):
    route_name: str
    route_id: str | None
    bins_collected: int
    total_bins: int
    completion_percentage: int
    total_weight: float
    missed_bins: int
    override_collections: int
    manual_entries: int
    elapsed_time: str | None = None


class AllRoutesSummary(BaseModel):
    elapsed_time: str
    total_bins_collected: int
    total_weight: float
    total_missed_bins: int
    total_override_collections: int
    total_manual_entries: int
    route_summaries: list[RouteSummary]


class RouteProgress(BaseModel):
    collected: int
    total: int
    percentage: int


class NewBinRequest(BaseModel):
    owner_id: str = Field(min_length=1)
    waste_type: str = "General"
    location: str | GeoPoint = "unknown"


class NewBagBatchRequest(BaseModel):
    owner_id: str = Field(min_length=1)
    bag_type: str = "General"
    quantity: int = Field(default=1, ge=1)
    location: str | GeoPoint = "unknown"


class SelectRouteRequest(BaseModel):
    route_id: str | None = None


class ReconcileCollectionsRequest(BaseModel):
    remote: list[CollectedBinEvent] = Field(default_factory=list)
    local: list[CollectedBinEvent] = Field(default_factory=list)
