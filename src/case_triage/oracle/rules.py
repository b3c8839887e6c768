"""Deterministic rule-evaluating oracle used for local runs and tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..core.errors import OracleError
from ..models import CALL_TOOL, CaseState, Command, FailureEvent
from .base import DecisionOracle

Rule = Callable[[FailureEvent], Command | None]
ArgsBuilder = Callable[[FailureEvent], dict[str, Any]]


def keyword_rule(keyword: str, capability: str, args_builder: ArgsBuilder) -> Rule:
    """Match when ``reason`` contains ``keyword`` (case-insensitive).

    On a match the rule returns a terminal ``CALL_TOOL`` command for
    ``capability`` with arguments built from the event.
    """

    needle = keyword.casefold()

    def _rule(event: FailureEvent) -> Command | None:
        reason = str(event.get("reason") or "").casefold()
        if needle not in reason:
            return None
        return Command(intent=CALL_TOOL, capability=capability, args=args_builder(event), stop=True)

    _rule.__name__ = f"keyword_rule[{keyword}->{capability}]"
    return _rule


class RuleBasedOracle(DecisionOracle):
    """Evaluate ``rules`` first-match-wins, falling back to ``fallback``."""

    def __init__(self, rules: Sequence[Rule], fallback: Rule) -> None:
        if fallback is None:
            raise ValueError("fallback rule must not be None")
        self._rules = tuple(rules)
        self._fallback = fallback

    async def decide_next(self, event: FailureEvent, state: CaseState) -> Command:
        for rule in self._rules:
            command = rule(event)
            if command is not None:
                return command
        command = self._fallback(event)
        if command is None:
            raise OracleError("Fallback rule returned no command")
        return command


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Ordered rules plus the catch-all fallback for one use case."""

    rules: tuple[Rule, ...]
    fallback: Rule

    def to_oracle(self) -> RuleBasedOracle:
        return RuleBasedOracle(self.rules, self.fallback)


__all__ = ["ArgsBuilder", "Rule", "RuleBasedOracle", "RuleSet", "keyword_rule"]
