"""Strategies for failure reasons with a known remedy."""

from __future__ import annotations

from typing import Any

from ..events import EventBus
from ..models import FailureEvent
from .base import FailureStrategy

_ACTOR = "deterministic-processor"


class LookupEnrichStrategy(FailureStrategy):
    """Repair an event by looking up and enriching a missing identifier.

    ``identifier`` names what is being looked up (``ISIN``, ``CUSIP`` ...), so
    one class covers every lookup-and-enrich remedy.
    """

    def __init__(
        self,
        bus: EventBus,
        events_address: str,
        identifier: str,
        *,
        case_id_field: str = "tradeId",
    ) -> None:
        if not identifier or not identifier.strip():
            raise ValueError("identifier must not be blank")
        self._bus = bus
        self._events_address = events_address
        self.identifier = identifier
        self._case_id_field = case_id_field

    async def handle(self, event: FailureEvent) -> dict[str, Any]:
        repaired = {
            "type": "TradeRepaired",
            self._case_id_field: event.get(self._case_id_field),
            "by": _ACTOR,
            "details": {"action": f"lookup+enrich {self.identifier}"},
        }
        await self._bus.publish(self._events_address, repaired)
        return repaired


class EscalateStrategy(FailureStrategy):
    """Escalate a recognised failure that cannot be repaired automatically."""

    def __init__(self, bus: EventBus, events_address: str, *, case_id_field: str = "tradeId") -> None:
        self._bus = bus
        self._events_address = events_address
        self._case_id_field = case_id_field

    async def handle(self, event: FailureEvent) -> dict[str, Any]:
        escalated = {
            "type": "TradeEscalated",
            self._case_id_field: event.get(self._case_id_field),
            "by": _ACTOR,
            "reason": event.get("reason"),
        }
        await self._bus.publish(self._events_address, escalated)
        return escalated


__all__ = ["EscalateStrategy", "LookupEnrichStrategy"]
