"""Contract for deterministic failure strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..models import FailureEvent


class FailureStrategy(ABC):
    """Handle one known failure reason without consulting the oracle."""

    @abstractmethod
    async def handle(self, event: FailureEvent) -> dict[str, Any]:
        """Return the result event describing the outcome."""


__all__ = ["FailureStrategy"]
