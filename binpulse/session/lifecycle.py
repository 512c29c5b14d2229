from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, tzinfo
from zoneinfo import ZoneInfo

from binpulse.models.database import KeyValueStore
from binpulse.models.schemas import SessionWindow

LOGGER = logging.getLogger(__name__)

SESSION_DATE_KEY = "sessionDate"
SESSION_START_TIME_KEY = "sessionStartTime"

MS_PER_MINUTE = 60_000
MS_PER_HOUR = 3_600_000

Clock = Callable[[], datetime]


def build_clock(timezone: str | None = None) -> Clock:
    """Wall clock returning aware datetimes in `timezone` (host local time when unset)."""
    zone: tzinfo | None = ZoneInfo(timezone) if timezone else None

    def _now() -> datetime:
        if zone is None:
            return datetime.now().astimezone()
        return datetime.now(tz=zone)

    return _now


def to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class SessionManager:
    """Day-scoped work session persisted through a key-value store.

    The store, not this object, is authoritative: `needs_reset` reads it on
    every call so a long-running process notices midnight without restarting.
    """

    def __init__(self, storage: KeyValueStore, *, clock: Clock | None = None) -> None:
        self.storage = storage
        self._clock = clock or build_clock()

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> str:
        return self.now().date().isoformat()

    def day_of(self, start_time: int) -> date | None:
        zone = self.now().tzinfo
        try:
            return datetime.fromtimestamp(start_time / 1000, tz=zone).date()
        except (OverflowError, OSError, ValueError):
            LOGGER.warning("Session start time %r is outside the supported range", start_time)
            return None

    def _stored_date(self) -> str | None:
        return self.storage.get(SESSION_DATE_KEY)

    def current_start_time(self) -> int | None:
        raw = self.storage.get(SESSION_START_TIME_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            LOGGER.warning("Ignoring malformed persisted session start time %r", raw)
            return None

    def _create(self) -> SessionWindow:
        now = self.now()
        window = SessionWindow(start_time=to_epoch_ms(now), date=now.date().isoformat(), is_new_session=True)
        self.storage.set(SESSION_DATE_KEY, window.date)
        self.storage.set(SESSION_START_TIME_KEY, str(window.start_time))
        LOGGER.info("New daily session started for %s at %s", window.date, now.strftime("%H:%M:%S"))
        return window

    def initialize(self) -> SessionWindow:
        today = self.today()
        start_time = self.current_start_time()
        if self._stored_date() != today or start_time is None:
            return self._create()
        start_day = self.day_of(start_time)
        if start_day is None or start_day.isoformat() != today:
            return self._create()

        LOGGER.info("Continuing session for %s", today)
        return SessionWindow(start_time=start_time, date=today, is_new_session=False)

    def needs_reset(self) -> bool:
        return self._stored_date() != self.today()

    def reset_for_new_day(self) -> SessionWindow:
        return self._create()

    def clear(self) -> None:
        self.storage.remove(SESSION_DATE_KEY)
        self.storage.remove(SESSION_START_TIME_KEY)

    def elapsed_time(self, start_time: int | None) -> str:
        """Format time since `start_time` as "<H>h <M>m".

        A start time from another calendar day reports "0h 0m".
        """
        if not start_time:
            return "0h 0m"
        now = self.now()
        if self.day_of(start_time) != now.date():
            return "0h 0m"

        elapsed = max(to_epoch_ms(now) - start_time, 0)
        hours = elapsed // MS_PER_HOUR
        minutes = (elapsed % MS_PER_HOUR) // MS_PER_MINUTE
        return f"{hours}h {minutes}m"
