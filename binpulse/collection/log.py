from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from binpulse.models.schemas import CollectedBinEvent

LOGGER = logging.getLogger(__name__)


class CollectionLog:
    """Append-only record of bins handled during the current worker session."""

    def __init__(self, events: Iterable[CollectedBinEvent] | None = None) -> None:
        self._events: list[CollectedBinEvent] = list(events or [])
        self._total_weight = math.fsum(event.weight for event in self._events)

    def __len__(self) -> int:
        return len(self._events)

    @property
    def events(self) -> tuple[CollectedBinEvent, ...]:
        return tuple(self._events)

    @property
    def total_weight(self) -> float:
        return self._total_weight

    def _recompute(self) -> None:
        self._total_weight = math.fsum(event.weight for event in self._events)

    def contains(self, bin_id: str) -> bool:
        return any(event.bin_id == bin_id for event in self._events)

    def append(self, event: CollectedBinEvent) -> None:
        self._events.append(event)
        self._recompute()
        LOGGER.debug("Logged %s for %s (%.2f kg)", event.status, event.bin_id, event.weight)

    def remove(self, bin_id: str) -> CollectedBinEvent | None:
        for index, event in enumerate(self._events):
            if event.bin_id == bin_id:
                del self._events[index]
                self._recompute()
                return event
        return None

    def replace_all(self, events: Iterable[CollectedBinEvent]) -> None:
        self._events = list(events)
        self._recompute()

    def clear(self) -> None:
        self._events = []
        self._total_weight = 0.0


def reconcile(
    remote: Iterable[CollectedBinEvent],
    local: Iterable[CollectedBinEvent],
) -> list[CollectedBinEvent]:
    """Merge backend and locally cached events, one entry per bin.

    Order follows first appearance; a later entry for the same bin replaces
    the earlier one, so local entries win over remote ones.
    """
    merged: dict[str, CollectedBinEvent] = {}
    for event in [*remote, *local]:
        merged[event.bin_id] = event
    return list(merged.values())
