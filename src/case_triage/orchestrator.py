"""Bounded decide -> execute -> record loop for failures without a known remedy.

The orchestrator is domain-agnostic: it never decides which capability fits
which reason. Per invocation it

* reads the case id through the configured field and loads a state snapshot,
* asks the oracle for a command,
* refuses anything that is not ``CALL_TOOL`` or not in the registry,
* invokes the capability and appends the step to the case store,
* repeats while the oracle says ``stop: false``, up to ``max_steps`` cycles.

The snapshot taken at the start is reused for every iteration; appends made by
this or any concurrent invocation are not re-read. When ``serialize_cases`` is
enabled, invocations for the same case run one at a time.
"""

from __future__ import annotations

import asyncio
import weakref
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError
from structlog.contextvars import bound_contextvars
from structlog.stdlib import BoundLogger

from .capabilities.registry import CapabilityRegistry
from .core.errors import (
    ApplicationError,
    CapabilityExecutionError,
    CaseStoreError,
    ConfigurationError,
    OracleError,
    UnsupportedIntentError,
    ValidationError,
)
from .core.logging import get_logger
from .models import AgentContext, CaseState, Command, FailureEvent, LogEntry
from .oracle.base import DecisionOracle
from .store import CaseStore

AGENT_PATH = "agent"
STEP_LIMIT_REASON = "Step limit reached (safety stop)"


class LoopState(str, Enum):
    """Phases an invocation moves through."""

    INIT = "init"
    DECIDING = "deciding"
    EXECUTING = "executing"
    RECORDING = "recording"
    LOOPING = "looping"
    DONE = "done"
    STEP_LIMIT_REACHED = "step_limit_reached"
    FAILED = "failed"


class AgentOrchestrator:
    """Run the agent loop against an oracle, a capability allow-list and a store."""

    DEFAULT_MAX_STEPS = 5
    DEFAULT_CASE_ID_FIELD = "tradeId"

    def __init__(
        self,
        *,
        oracle: DecisionOracle,
        capabilities: CapabilityRegistry,
        store: CaseStore,
        case_id_field: str = DEFAULT_CASE_ID_FIELD,
        max_steps: int = DEFAULT_MAX_STEPS,
        serialize_cases: bool = False,
        logger: BoundLogger | None = None,
    ) -> None:
        if max_steps < 1:
            raise ConfigurationError("max_steps must be at least 1", details={"max_steps": max_steps})
        if not case_id_field:
            raise ConfigurationError("case_id_field must not be blank")

        self._oracle = oracle
        self._capabilities = capabilities
        self._store = store
        self._case_id_field = case_id_field
        self._max_steps = max_steps
        self._serialize_cases = serialize_cases
        self._case_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._logger = (logger or get_logger(__name__)).bind(component="AgentOrchestrator")

    @property
    def max_steps(self) -> int:
        return self._max_steps

    @property
    def case_id_field(self) -> str:
        return self._case_id_field

    async def handle(self, event: FailureEvent) -> dict[str, Any]:
        """Run one invocation and return its terminal reply.

        Returns the ``ok`` reply when the oracle stops, or the safety-stop reply
        when ``max_steps`` cycles ran without a stop. Any failure raises an
        :class:`~case_triage.core.errors.ApplicationError` carrying the
        originating message; the failing step is not recorded.
        """

        view: Mapping[str, Any] = MappingProxyType(dict(event))
        case_id = self._extract_case_id(view)
        correlation_id = str(view.get("correlationId") or uuid4())

        with bound_contextvars(correlation_id=correlation_id, case_id=case_id):
            if not self._serialize_cases:
                return await self._run(view, case_id, correlation_id)
            async with self._case_lock(case_id):
                return await self._run(view, case_id, correlation_id)

    async def _run(
        self, event: Mapping[str, Any], case_id: str, correlation_id: str
    ) -> dict[str, Any]:
        phase = LoopState.INIT
        step = 0
        self._logger.info("agent.invoke.start", max_steps=self._max_steps)
        try:
            snapshot = await self._load(case_id)
            ctx = AgentContext(correlation_id=correlation_id, case_id=case_id, state=snapshot)

            while True:
                phase = LoopState.DECIDING
                command = await self._decide(event, ctx.state)

                phase = LoopState.EXECUTING
                result = await self._execute(command, ctx)

                phase = LoopState.RECORDING
                await self._record(case_id, LogEntry(step=step, command=command, result=result))
                self._logger.info(
                    "agent.step.complete",
                    step=step,
                    capability=command.capability,
                    stop=command.stop,
                )

                if command.stop:
                    phase = LoopState.DONE
                    self._logger.info("agent.invoke.complete", steps=step + 1)
                    return {
                        "status": "ok",
                        "path": AGENT_PATH,
                        "result": result,
                        self._case_id_field: case_id,
                    }

                if step + 1 >= self._max_steps:
                    phase = LoopState.STEP_LIMIT_REACHED
                    self._logger.warning("agent.step_limit", steps=step + 1)
                    return {
                        "status": "error",
                        "path": AGENT_PATH,
                        "reason": STEP_LIMIT_REASON,
                        self._case_id_field: case_id,
                    }

                phase = LoopState.LOOPING
                step += 1
        except ApplicationError as exc:
            self._logger.error(
                "agent.failed",
                state=LoopState.FAILED.value,
                failed_in=phase.value,
                step=step,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            raise

    def _case_lock(self, case_id: str) -> asyncio.Lock:
        lock = self._case_locks.get(case_id)
        if lock is None:
            lock = self._case_locks[case_id] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def _extract_case_id(self, event: Mapping[str, Any]) -> str:
        value = event.get(self._case_id_field)
        if value is None or not str(value).strip():
            raise ValidationError(
                f"Event is missing case identifier field '{self._case_id_field}'",
                details={"field": self._case_id_field},
            )
        return str(value)

    async def _load(self, case_id: str) -> CaseState:
        try:
            return await self._store.load(case_id)
        except ApplicationError:
            raise
        except Exception as exc:
            raise CaseStoreError(str(exc) or f"Failed to load case '{case_id}'") from exc

    async def _decide(self, event: Mapping[str, Any], state: CaseState) -> Command:
        try:
            raw = await self._oracle.decide_next(event, state)
        except ApplicationError:
            raise
        except Exception as exc:
            raise OracleError(str(exc) or "Decision oracle failed") from exc

        if raw is None:
            raise OracleError("Decision oracle returned no command")
        try:
            return Command.model_validate(raw)
        except PydanticValidationError as exc:
            raise OracleError(
                f"Decision oracle returned a malformed command: {exc.error_count()} error(s)"
            ) from exc

    async def _execute(self, command: Command, ctx: AgentContext) -> dict[str, Any]:
        if not command.executable:
            raise UnsupportedIntentError(
                f"Unsupported intent: {command.intent}", details={"intent": command.intent}
            )

        capability = self._capabilities.resolve(command.capability)
        capability.validate_args(command.args)

        try:
            result = await capability.invoke(dict(command.args), ctx)
        except ApplicationError:
            raise
        except Exception as exc:
            raise CapabilityExecutionError(
                str(exc) or f"Capability '{command.capability}' failed",
                details={"capability": command.capability},
            ) from exc

        if result is None:
            return {}
        if not isinstance(result, Mapping):
            raise CapabilityExecutionError(
                f"Capability '{command.capability}' returned a non-mapping result",
                details={"capability": command.capability},
            )
        return dict(result)

    async def _record(self, case_id: str, entry: LogEntry) -> None:
        try:
            await self._store.append(case_id, entry)
        except ApplicationError:
            raise
        except Exception as exc:
            raise CaseStoreError(str(exc) or f"Failed to append to case '{case_id}'") from exc


__all__ = ["AGENT_PATH", "AgentOrchestrator", "LoopState", "STEP_LIMIT_REASON"]
