"""Interface for the component that decides the agent's next action."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from ..models import CaseState, Command, FailureEvent


class DecisionOracle(ABC):
    """Given an event and the case state, return the next :class:`Command`.

    Implementations may return a ``Command`` or a plain mapping with the same
    keys; the orchestrator validates either form. The orchestrator, not the
    oracle, owns the allow-list and the step bound, so an oracle is free to be
    wrong or never to say ``stop``.
    """

    @abstractmethod
    async def decide_next(
        self, event: FailureEvent, state: CaseState
    ) -> Command | Mapping[str, Any]:
        """Decide what the agent should do next."""

    async def aclose(self) -> None:
        """Release resources held by the oracle. Nothing to release by default."""


__all__ = ["DecisionOracle"]
