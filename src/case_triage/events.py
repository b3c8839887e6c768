"""In-process publish/subscribe bus for outbound domain events."""

from __future__ import annotations

import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable, Mapping

from .core.logging import get_logger

Subscriber = Callable[[dict[str, Any]], Awaitable[None] | None]


class EventBus:
    """Fan-out of domain events to every subscriber of an address.

    Publishing is fire-and-forget from the publisher's point of view: a failing
    subscriber is logged and does not affect the others or the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._logger = get_logger(__name__).bind(component="EventBus")

    def subscribe(self, address: str, subscriber: Subscriber) -> None:
        self._subscribers[address].append(subscriber)

    async def publish(self, address: str, event: Mapping[str, Any]) -> None:
        for subscriber in list(self._subscribers.get(address, ())):
            try:
                outcome = subscriber(dict(event))
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                self._logger.exception("events.subscriber.error", address=address)


class EventLogSink:
    """Subscriber that records every domain event it receives."""

    def __init__(self, address: str) -> None:
        self.address = address
        self.received: list[dict[str, Any]] = []
        self._logger = get_logger(__name__).bind(component="EventLogSink", address=address)

    def attach(self, bus: EventBus) -> "EventLogSink":
        bus.subscribe(self.address, self)
        return self

    def __call__(self, event: dict[str, Any]) -> None:
        self.received.append(event)
        self._logger.info("events.received", event_type=event.get("type"), payload=event)


__all__ = ["EventBus", "EventLogSink", "Subscriber"]
