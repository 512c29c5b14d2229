from __future__ import annotations

import asyncio
import logging

from binpulse.analytics.route_summary import route_progress, summary_for_all_routes, summary_for_route
from binpulse.collection.log import CollectionLog, reconcile
from binpulse.config import RouteCatalog
from binpulse.models.schemas import AllRoutesSummary, CollectedBinEvent, RouteProgress, RouteSummary, SessionWindow
from binpulse.session.daily_reset import DailyResetCoordinator
from binpulse.session.lifecycle import SessionManager

LOGGER = logging.getLogger(__name__)


class SessionTracker:
    """One worker shift: session window, collection log and route selection."""

    def __init__(
        self,
        sessions: SessionManager,
        coordinator: DailyResetCoordinator,
        log: CollectionLog,
        routes: RouteCatalog,
    ) -> None:
        self.sessions = sessions
        self.coordinator = coordinator
        self.log = log
        self.routes = routes
        self.window: SessionWindow | None = None
        self.selected_route_id: str | None = None
        self.elapsed_time = "0h 0m"
        self._running = False

    @property
    def start_time(self) -> int | None:
        return self.window.start_time if self.window else None

    def start(self) -> SessionWindow:
        self.window = self.sessions.initialize()
        self.coordinator.register_callback(self.log.clear)
        self.elapsed_time = self.sessions.elapsed_time(self.window.start_time)
        return self.window

    def _reload_window(self) -> None:
        start_time = self.sessions.current_start_time()
        if start_time is not None:
            self.window = SessionWindow(start_time=start_time, date=self.sessions.today(), is_new_session=True)

    def _ensure_current(self) -> bool:
        # a window from an earlier day is replaced before anything reads it
        if self.window is None:
            self.start()
        return self.coordinator.poll_and_reset(self._reload_window)

    def tick(self) -> bool:
        was_reset = self._ensure_current()
        self.elapsed_time = self.sessions.elapsed_time(self.start_time)
        return was_reset

    def select_route(self, route_id: str | None) -> bool:
        if route_id is not None and not self.routes.is_valid(route_id):
            LOGGER.warning("Ignoring unknown route %s", route_id)
            return False
        self.selected_route_id = route_id
        return True

    def route_summary(self, route_id: str | None) -> RouteSummary:
        self._ensure_current()
        return summary_for_route(self.log.events, route_id, self.start_time, self.routes, self.sessions)

    def current_route_summary(self) -> RouteSummary:
        return self.route_summary(self.selected_route_id)

    def progress(self, route_id: str | None) -> RouteProgress:
        self._ensure_current()
        return route_progress(route_id, self.log.events, self.routes)

    def record(self, event: CollectedBinEvent) -> None:
        self._ensure_current()
        self.log.append(event)

    def undo(self, bin_id: str) -> CollectedBinEvent | None:
        self._ensure_current()
        return self.log.remove(bin_id)

    def reconcile_events(self, remote: list[CollectedBinEvent], local: list[CollectedBinEvent]) -> None:
        self._ensure_current()
        self.log.replace_all(reconcile(remote, local))

    def full_summary(self) -> AllRoutesSummary:
        self._ensure_current()
        return summary_for_all_routes(self.log.events, self.start_time, self.routes, self.sessions)

    async def run_forever(self, interval_seconds: float = 60.0) -> None:
        self._running = True
        while self._running:
            await asyncio.sleep(interval_seconds)
            self.tick()

    def stop(self) -> None:
        self._running = False
        self.coordinator.unregister_callback(self.log.clear)
