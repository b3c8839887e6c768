"""Deterministic strategies selected by failure reason."""

from .base import FailureStrategy
from .builtin import EscalateStrategy, LookupEnrichStrategy

__all__ = ["EscalateStrategy", "FailureStrategy", "LookupEnrichStrategy"]
