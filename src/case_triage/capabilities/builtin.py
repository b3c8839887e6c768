"""Capabilities shipped with the service."""

from __future__ import annotations

from typing import Any, Mapping
from uuid import uuid4

from ..events import EventBus
from ..models import AgentContext
from .base import Capability


class PublishEventCapability(Capability):
    """Publish the supplied arguments as a domain event.

    The event is enriched with ``correlationId`` and ``caseId`` from the agent
    context before it goes out.
    """

    name = "events.publish"
    description = "Publishes a domain event to the event bus for downstream consumers."
    input_schema = {
        "type": "object",
        "properties": {
            "type": {"type": "string", "description": "The event type, e.g. TradeEscalated"},
            "reason": {"type": "string", "description": "The reason for the event"},
        },
        "required": ["type"],
    }

    def __init__(self, bus: EventBus, events_address: str) -> None:
        self._bus = bus
        self._events_address = events_address

    async def invoke(self, args: Mapping[str, Any], ctx: AgentContext) -> dict[str, Any]:
        event = dict(args)
        event["correlationId"] = ctx.correlation_id
        event["caseId"] = ctx.case_id
        await self._bus.publish(self._events_address, event)
        return {"status": "published", "event": event}


class RaiseTicketCapability(Capability):
    """Open a support ticket for a failure that needs manual investigation."""

    name = "case.raiseTicket"
    description = "Creates a support ticket for a failure requiring manual investigation."

    def __init__(self, bus: EventBus, events_address: str, *, case_id_field: str = "tradeId") -> None:
        self._bus = bus
        self._events_address = events_address
        self._case_id_field = case_id_field
        self.input_schema = {
            "type": "object",
            "properties": {
                case_id_field: {"type": "string", "description": "The case identifier"},
                "category": {"type": "string", "description": "Ticket category, e.g. ReferenceData"},
                "summary": {"type": "string", "description": "Brief summary of the issue"},
                "detail": {"type": "string", "description": "Detailed description of the failure"},
            },
            "required": [case_id_field, "category", "summary"],
        }

    async def invoke(self, args: Mapping[str, Any], ctx: AgentContext) -> dict[str, Any]:
        ticket_id = f"TICKET-{uuid4()}"
        case_value = args.get(self._case_id_field)

        await self._bus.publish(
            self._events_address,
            {
                "type": "TicketCreated",
                "ticketId": ticket_id,
                self._case_id_field: case_value,
                "category": args.get("category"),
                "correlationId": ctx.correlation_id,
                "caseId": ctx.case_id,
            },
        )
        return {
            "status": "created",
            "ticketId": ticket_id,
            self._case_id_field: case_value,
            "category": args.get("category"),
            "summary": args.get("summary"),
        }


__all__ = ["PublishEventCapability", "RaiseTicketCapability"]
