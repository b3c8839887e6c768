"""Rule sets for concrete use cases."""

from __future__ import annotations

from ..models import CALL_TOOL, Command, FailureEvent
from .rules import RuleSet, keyword_rule


def trade_failure_rules(case_id_field: str = "tradeId") -> RuleSet:
    """Rules for trade failures that no deterministic strategy handled.

    1. ``reason`` mentions an LEI: raise a ``ReferenceData`` ticket.
    2. Anything else: publish a ``TradeEscalated`` event for a human to pick up.
    """

    def _ticket_args(event: FailureEvent) -> dict[str, object]:
        return {
            case_id_field: event.get(case_id_field),
            "category": "ReferenceData",
            "summary": "Counterparty LEI issue",
            "detail": f"Failure reason: {event.get('reason')}",
        }

    def _escalate(event: FailureEvent) -> Command:
        return Command.model_validate(
            {
                "intent": CALL_TOOL,
                "capability": "events.publish",
                "args": {
                    "type": "TradeEscalated",
                    case_id_field: event.get(case_id_field),
                    "by": "agent",
                    "reason": event.get("reason") or "",
                },
                "expected": "Escalation event published",
                "stop": True,
            }
        )

    rules = (keyword_rule("lei", "case.raiseTicket", _ticket_args),)
    return RuleSet(rules=rules, fallback=_escalate)


__all__ = ["trade_failure_rules"]
