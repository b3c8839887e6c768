"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

from case_triage.capabilities import Capability
from case_triage.models import CALL_TOOL, AgentContext, CaseState, Command, FailureEvent
from case_triage.oracle import DecisionOracle

EVENTS_ADDRESS = "events.out"


class ScriptedOracle(DecisionOracle):
    """Replays ``commands`` in order, repeating the last one once exhausted."""

    def __init__(self, *commands: Mapping[str, Any] | Command, delay: float = 0.0) -> None:
        if not commands:
            raise ValueError("at least one command is required")
        self.commands = list(commands)
        self.delay = delay
        self.calls: list[tuple[dict[str, Any], CaseState]] = []

    async def decide_next(self, event: FailureEvent, state: CaseState) -> Mapping[str, Any] | Command:
        self.calls.append((dict(event), state))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.commands[min(len(self.calls), len(self.commands)) - 1]


class RecordingCapability(Capability):
    name = "test.record"
    description = "Echoes its arguments back."

    def __init__(self) -> None:
        self.invocations: list[tuple[dict[str, Any], AgentContext]] = []

    async def invoke(self, args: Mapping[str, Any], ctx: AgentContext) -> dict[str, Any]:
        self.invocations.append((dict(args), ctx))
        return {"echo": dict(args), "invocation": len(self.invocations)}


class FailingCapability(Capability):
    name = "test.fail"
    description = "Always fails."

    async def invoke(self, args: Mapping[str, Any], ctx: AgentContext) -> dict[str, Any]:
        raise RuntimeError("boom")


def call(capability: str, args: Mapping[str, Any] | None = None, *, stop: bool = True) -> dict[str, Any]:
    return {"intent": CALL_TOOL, "capability": capability, "args": dict(args or {}), "stop": stop}
