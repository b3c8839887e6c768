"""Decision oracles: the pluggable 'what next?' step of the agent loop."""

from .base import DecisionOracle
from .openai import OpenAIOracle
from .rules import Rule, RuleBasedOracle, RuleSet, keyword_rule
from .rulesets import trade_failure_rules

__all__ = [
    "DecisionOracle",
    "OpenAIOracle",
    "Rule",
    "RuleBasedOracle",
    "RuleSet",
    "keyword_rule",
    "trade_failure_rules",
]
