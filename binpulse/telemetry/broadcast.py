from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from binpulse.models.schemas import BinTelemetryRecord

LOGGER = logging.getLogger(__name__)

Snapshot = Sequence[BinTelemetryRecord]


@runtime_checkable
class TelemetryListener(Protocol):
    def notify(self, snapshot: Snapshot) -> None: ...


class CallbackListener:
    def __init__(self, callback: Callable[[Snapshot], object]) -> None:
        self.callback = callback

    def notify(self, snapshot: Snapshot) -> None:
        self.callback(snapshot)

    def __repr__(self) -> str:
        return f"CallbackListener({self.callback!r})"


class Subscription:
    """Handle returned by `BroadcastBus.subscribe`; call it or `cancel()` to detach."""

    def __init__(self, bus: BroadcastBus, listener: TelemetryListener) -> None:
        self._bus = bus
        self.listener = listener

    @property
    def active(self) -> bool:
        return self._bus.is_subscribed(self)

    def cancel(self) -> None:
        self._bus.unsubscribe(self)

    def __call__(self) -> None:
        self.cancel()


class BroadcastBus:
    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, listener: TelemetryListener | Callable[[Snapshot], object]) -> Subscription:
        if not isinstance(listener, TelemetryListener):
            if not callable(listener):
                raise TypeError("listener must implement notify(snapshot) or be callable")
            listener = CallbackListener(listener)
        subscription = Subscription(self, listener)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def is_subscribed(self, subscription: Subscription) -> bool:
        return subscription in self._subscriptions

    def publish(self, snapshot: Snapshot) -> int:
        """Deliver one snapshot to every listener; returns how many failed."""
        failures = 0
        # listeners may unsubscribe while being notified
        for subscription in list(self._subscriptions):
            try:
                subscription.listener.notify(snapshot)
            except Exception:
                failures += 1
                LOGGER.exception("Telemetry listener %r failed", subscription.listener)
        return failures

    def clear(self) -> None:
        self._subscriptions.clear()
