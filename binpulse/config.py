from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass(slots=True)
class ReadingRange:
    min: float
    max: float

    def clamp(self, value: float) -> float:
        return max(self.min, min(self.max, value))


@dataclass(slots=True)
class TelemetryRanges:
    fill_level: ReadingRange = field(default_factory=lambda: ReadingRange(20.0, 100.0))
    battery_level: ReadingRange = field(default_factory=lambda: ReadingRange(15.0, 100.0))
    temperature: ReadingRange = field(default_factory=lambda: ReadingRange(20.0, 32.0))
    humidity: ReadingRange = field(default_factory=lambda: ReadingRange(40.0, 70.0))
    pressure: ReadingRange = field(default_factory=lambda: ReadingRange(1010.0, 1030.0))


@dataclass(slots=True)
class TelemetryConfig:
    ranges: TelemetryRanges = field(default_factory=TelemetryRanges)
    bin_id_prefix: str = "BIN-"
    update_interval_seconds: float = 5.0
    auto_start_updates: bool = True
    seed: int | None = None
    demo_owners: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SessionConfig:
    timezone: str | None = None
    reset_poll_seconds: float = 60.0
    auto_start_polling: bool = True
    storage_path: Path | None = None


@dataclass(slots=True, frozen=True)
class BinSite:
    bin_id: str
    latitude: float
    longitude: float
    address: str = ""
    owner_id: str | None = None


@dataclass(slots=True, frozen=True)
class RouteDefinition:
    id: str
    name: str
    bins: tuple[str, ...]
    description: str = ""
    center: tuple[float, float] | None = None


class RouteCatalog:
    """Read-only view over the configured collection routes and bin sites."""

    def __init__(self, routes: list[RouteDefinition], sites: list[BinSite] | None = None) -> None:
        self._routes: dict[str, RouteDefinition] = {route.id: route for route in routes}
        self._sites: dict[str, BinSite] = {site.bin_id: site for site in sites or []}

    def available_routes(self) -> list[RouteDefinition]:
        return list(self._routes.values())

    def get(self, route_id: str | None) -> RouteDefinition | None:
        if not route_id:
            return None
        return self._routes.get(route_id)

    def is_valid(self, route_id: str | None) -> bool:
        return self.get(route_id) is not None

    def site(self, bin_id: str) -> BinSite | None:
        return self._sites.get(bin_id)

    def bins_for_route(self, route_id: str) -> list[BinSite]:
        route = self.get(route_id)
        if route is None:
            return []
        return [site for site in (self.site(bin_id) for bin_id in route.bins) if site is not None]

    def route_center(self, route_id: str) -> tuple[float, float] | None:
        route = self.get(route_id)
        return route.center if route else None


@dataclass(slots=True)
class AppConfig:
    telemetry: TelemetryConfig
    session: SessionConfig
    routes: RouteCatalog


class ConfigError(RuntimeError):
    pass


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected mapping in {path}")
    return data


def _resolve_config_dir() -> Path:
    env_dir = os.getenv("BINPULSE_CONFIG_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()
    return (Path(__file__).resolve().parents[1] / "config").resolve()


def _parse_range(raw: Any, default: ReadingRange, name: str) -> ReadingRange:
    if raw is None:
        return ReadingRange(default.min, default.max)
    if not isinstance(raw, dict):
        raise ConfigError(f"telemetry.ranges.{name} must be a dictionary with min/max")
    parsed = ReadingRange(float(raw.get("min", default.min)), float(raw.get("max", default.max)))
    if parsed.min > parsed.max:
        raise ConfigError(f"telemetry.ranges.{name}: min {parsed.min} exceeds max {parsed.max}")
    return parsed


def _parse_telemetry(raw: dict[str, Any]) -> TelemetryConfig:
    ranges_raw = raw.get("ranges", {}) or {}
    if not isinstance(ranges_raw, dict):
        raise ConfigError("telemetry.ranges must be a dictionary")

    defaults = TelemetryRanges()
    ranges = TelemetryRanges(
        fill_level=_parse_range(ranges_raw.get("fill_level"), defaults.fill_level, "fill_level"),
        battery_level=_parse_range(ranges_raw.get("battery_level"), defaults.battery_level, "battery_level"),
        temperature=_parse_range(ranges_raw.get("temperature"), defaults.temperature, "temperature"),
        humidity=_parse_range(ranges_raw.get("humidity"), defaults.humidity, "humidity"),
        pressure=_parse_range(ranges_raw.get("pressure"), defaults.pressure, "pressure"),
    )

    seed = raw.get("seed")
    return TelemetryConfig(
        ranges=ranges,
        bin_id_prefix=str(raw.get("bin_id_prefix", "BIN-")),
        update_interval_seconds=float(raw.get("update_interval_seconds", 5.0)),
        auto_start_updates=bool(raw.get("auto_start_updates", True)),
        seed=int(seed) if seed is not None else None,
        demo_owners=[str(item) for item in raw.get("demo_owners", []) or []],
    )


def _parse_session(raw: dict[str, Any], base_dir: Path) -> SessionConfig:
    storage_raw = raw.get("storage_path")
    storage_path: Path | None = None
    if storage_raw:
        storage_path = Path(str(storage_raw))
        if not storage_path.is_absolute():
            storage_path = (base_dir / storage_path).resolve()

    timezone = raw.get("timezone")
    return SessionConfig(
        timezone=str(timezone) if timezone else None,
        reset_poll_seconds=float(raw.get("reset_poll_seconds", 60.0)),
        auto_start_polling=bool(raw.get("auto_start_polling", True)),
        storage_path=storage_path,
    )


def _parse_sites(raw_sites: list[dict[str, Any]]) -> list[BinSite]:
    sites: list[BinSite] = []
    for item in raw_sites:
        sites.append(
            BinSite(
                bin_id=str(item["bin_id"]),
                latitude=float(item["latitude"]),
                longitude=float(item["longitude"]),
                address=str(item.get("address", "")),
                owner_id=str(item["owner_id"]) if item.get("owner_id") is not None else None,
            )
        )
    return sites


def _parse_routes(raw_routes: list[dict[str, Any]]) -> list[RouteDefinition]:
    routes: list[RouteDefinition] = []
    seen: set[str] = set()
    for item in raw_routes:
        route_id = str(item["id"])
        if route_id in seen:
            raise ConfigError(f"Duplicate route id `{route_id}` in routes.yaml")
        seen.add(route_id)

        bins_raw = item.get("bins", []) or []
        if not isinstance(bins_raw, list):
            raise ConfigError(f"routes.{route_id}.bins must be a list")

        # ordered set: keep first occurrence
        bins = tuple(dict.fromkeys(str(bin_id) for bin_id in bins_raw))

        center_raw = item.get("center")
        center = None
        if isinstance(center_raw, dict):
            center = (float(center_raw["latitude"]), float(center_raw["longitude"]))

        routes.append(
            RouteDefinition(
                id=route_id,
                name=str(item.get("name", route_id)),
                bins=bins,
                description=str(item.get("description", "")),
                center=center,
            )
        )
    return routes


def load_config(config_dir: Path | None = None) -> AppConfig:
    directory = config_dir or _resolve_config_dir()
    if not directory.exists():
        raise ConfigError(f"Config directory not found: {directory}")

    engine_cfg = _read_yaml(directory / "engine.yaml")
    routes_cfg = _read_yaml(directory / "routes.yaml")

    telemetry_raw = engine_cfg.get("telemetry", {}) or {}
    session_raw = engine_cfg.get("session", {}) or {}
    if not isinstance(telemetry_raw, dict) or not isinstance(session_raw, dict):
        raise ConfigError("engine.yaml sections `telemetry` and `session` must be dictionaries")

    sites_raw = routes_cfg.get("bins", []) or []
    routes_raw = routes_cfg.get("routes", []) or []
    if not isinstance(sites_raw, list) or not isinstance(routes_raw, list):
        raise ConfigError("routes.yaml `bins` and `routes` must be lists")

    try:
        catalog = RouteCatalog(_parse_routes(routes_raw), _parse_sites(sites_raw))
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid routes.yaml: {exc}") from exc

    return AppConfig(
        telemetry=_parse_telemetry(telemetry_raw),
        session=_parse_session(session_raw, directory.parent),
        routes=catalog,
    )
