from __future__ import annotations

import logging
from collections.abc import Callable

from binpulse.session.lifecycle import SessionManager

LOGGER = logging.getLogger(__name__)

ResetCallback = Callable[[], object]


class DailyResetCoordinator:
    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions
        self._callbacks: list[ResetCallback] = []

    @property
    def callbacks(self) -> tuple[ResetCallback, ...]:
        return tuple(self._callbacks)

    def register_callback(self, callback: ResetCallback) -> None:
        if not callable(callback):
            raise TypeError("reset callback must be callable")
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: ResetCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def clear_callbacks(self) -> None:
        self._callbacks.clear()

    def _invoke(self, callback: ResetCallback) -> None:
        try:
            callback()
        except Exception:
            LOGGER.exception("Daily reset callback %r failed", callback)

    def poll_and_reset(self, on_reset: ResetCallback | None = None) -> bool:
        if not self.sessions.needs_reset():
            return False

        window = self.sessions.reset_for_new_day()
        LOGGER.info("Daily reset executed for %s", window.date)

        if on_reset is not None:
            self._invoke(on_reset)
        for callback in list(self._callbacks):
            self._invoke(callback)
        return True
