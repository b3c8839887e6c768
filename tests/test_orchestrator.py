"""Tests for the bounded decide -> execute -> record loop."""

from __future__ import annotations

import asyncio
import gc
from typing import Any, Mapping

import pytest

from case_triage.capabilities import Capability, CapabilityRegistry
from case_triage.core.errors import (
    CapabilityExecutionError,
    CapabilityNotAllowedError,
    CaseStoreError,
    ConfigurationError,
    InvalidCapabilityArgumentsError,
    OracleError,
    UnsupportedIntentError,
    ValidationError,
)
from case_triage.models import CALL_TOOL, AgentContext, CaseState
from case_triage.oracle import DecisionOracle
from case_triage.orchestrator import STEP_LIMIT_REASON, AgentOrchestrator
from case_triage.store import InMemoryCaseStore

from .fixtures import RecordingCapability, ScriptedOracle, call

EVENT = {"caseId": "T-1", "reason": "Something unusual"}


def _orchestrator(oracle: DecisionOracle, registry: CapabilityRegistry, store, **kwargs: Any) -> AgentOrchestrator:
    return AgentOrchestrator(oracle=oracle, capabilities=registry, store=store, case_id_field="caseId", **kwargs)


@pytest.mark.asyncio
async def test_stop_command_completes_in_one_step(registry, store, recorder) -> None:
    oracle = ScriptedOracle(call("test.record", {"note": "hi"}))

    reply = await _orchestrator(oracle, registry, store).handle(EVENT)

    assert reply == {
        "status": "ok",
        "path": "agent",
        "result": {"echo": {"note": "hi"}, "invocation": 1},
        "caseId": "T-1",
    }
    state = await store.load("T-1")
    assert state.step == 1
    assert state.last.step == 0
    assert state.last.command.capability == "test.record"


@pytest.mark.asyncio
async def test_loop_continues_until_stop(registry, store, recorder) -> None:
    oracle = ScriptedOracle(call("test.record", stop=False), call("test.record", stop=False), call("test.record"))

    reply = await _orchestrator(oracle, registry, store).handle(EVENT)

    assert reply["result"]["invocation"] == 3
    assert len(oracle.calls) == 3
    assert [entry.step for entry in await store.history("T-1")] == [0, 1, 2]


@pytest.mark.asyncio
@pytest.mark.parametrize("max_steps", [1, 2, 5])
async def test_step_limit_after_exactly_max_steps_cycles(registry, store, recorder, max_steps: int) -> None:
    oracle = ScriptedOracle(call("test.record", stop=False))

    reply = await _orchestrator(oracle, registry, store, max_steps=max_steps).handle(EVENT)

    assert reply == {"status": "error", "path": "agent", "reason": STEP_LIMIT_REASON, "caseId": "T-1"}
    assert len(oracle.calls) == max_steps
    assert len(recorder.invocations) == max_steps
    assert (await store.load("T-1")).step == max_steps


@pytest.mark.asyncio
async def test_unsupported_intent_fails_without_recording(registry, store, recorder) -> None:
    oracle = ScriptedOracle({"intent": "UNKNOWN", "capability": "test.record", "args": {}, "stop": True})

    with pytest.raises(UnsupportedIntentError, match="Unsupported intent: UNKNOWN"):
        await _orchestrator(oracle, registry, store).handle(EVENT)

    assert recorder.invocations == []
    assert (await store.load("T-1")).step == 0
    assert await store.history("T-1") == []


@pytest.mark.asyncio
async def test_missing_intent_is_not_executed(registry, store, recorder) -> None:
    oracle = ScriptedOracle({"capability": "test.record"})

    with pytest.raises(UnsupportedIntentError):
        await _orchestrator(oracle, registry, store).handle(EVENT)

    assert recorder.invocations == []


@pytest.mark.asyncio
async def test_capability_outside_allow_list_is_never_invoked(registry, store) -> None:
    oracle = ScriptedOracle(call("test.record", stop=False), call("shell.exec"))

    with pytest.raises(CapabilityNotAllowedError, match="shell.exec"):
        await _orchestrator(oracle, registry, store).handle(EVENT)

    # the first, valid step stays recorded; the rejected one does not
    assert [entry.command.capability for entry in await store.history("T-1")] == ["test.record"]


@pytest.mark.asyncio
async def test_missing_stop_defaults_to_true_and_missing_args_to_empty(registry, store, recorder) -> None:
    oracle = ScriptedOracle({"intent": CALL_TOOL, "capability": "test.record"})

    reply = await _orchestrator(oracle, registry, store).handle(EVENT)

    assert reply["status"] == "ok"
    assert len(oracle.calls) == 1
    assert recorder.invocations[0][0] == {}


@pytest.mark.asyncio
async def test_null_stop_and_args_are_treated_as_missing(registry, store, recorder) -> None:
    oracle = ScriptedOracle({"intent": CALL_TOOL, "capability": "test.record", "args": None, "stop": None})

    await _orchestrator(oracle, registry, store).handle(EVENT)

    assert len(oracle.calls) == 1
    assert recorder.invocations[0][0] == {}


@pytest.mark.asyncio
async def test_state_snapshot_is_not_reloaded_between_steps(registry, store, recorder) -> None:
    oracle = ScriptedOracle(call("test.record", stop=False), call("test.record"))

    await _orchestrator(oracle, registry, store).handle(EVENT)

    assert [state.step for _, state in oracle.calls] == [0, 0]
    assert oracle.calls[0][1] is oracle.calls[1][1]
    assert recorder.invocations[0][1] is recorder.invocations[1][1]


@pytest.mark.asyncio
async def test_same_event_is_passed_to_every_decision(registry, store) -> None:
    oracle = ScriptedOracle(call("test.record", stop=False), call("test.record"))
    event = dict(EVENT)

    await _orchestrator(oracle, registry, store).handle(event)

    assert [seen for seen, _ in oracle.calls] == [EVENT, EVENT]
    assert event == EVENT


@pytest.mark.asyncio
async def test_correlation_id_is_reused_or_generated(registry, store, recorder) -> None:
    orchestrator = _orchestrator(ScriptedOracle(call("test.record")), registry, store)

    await orchestrator.handle({**EVENT, "correlationId": "corr-42"})
    await orchestrator.handle(EVENT)

    first: AgentContext = recorder.invocations[0][1]
    second: AgentContext = recorder.invocations[1][1]
    assert first.correlation_id == "corr-42"
    assert second.correlation_id and second.correlation_id != "corr-42"
    assert second.case_id == "T-1"


@pytest.mark.asyncio
async def test_missing_case_id_is_rejected(registry, store) -> None:
    oracle = ScriptedOracle(call("test.record"))

    with pytest.raises(ValidationError, match="caseId"):
        await _orchestrator(oracle, registry, store).handle({"reason": "odd"})

    assert oracle.calls == []


@pytest.mark.asyncio
async def test_capability_failure_propagates_without_recording(registry, store) -> None:
    oracle = ScriptedOracle(call("test.fail"))

    with pytest.raises(CapabilityExecutionError, match="boom"):
        await _orchestrator(oracle, registry, store).handle(EVENT)

    assert (await store.load("T-1")).step == 0


@pytest.mark.asyncio
async def test_invalid_arguments_fail_before_invocation(registry, store, bus, sink) -> None:
    oracle = ScriptedOracle(call("events.publish", {"reason": "no type"}))

    with pytest.raises(InvalidCapabilityArgumentsError, match="events.publish"):
        await _orchestrator(oracle, registry, store).handle(EVENT)

    assert sink.received == []
    assert (await store.load("T-1")).step == 0


class _BrokenOracle(DecisionOracle):
    async def decide_next(self, event: Mapping[str, Any], state: CaseState) -> Any:
        raise ConnectionError("model unreachable")


@pytest.mark.asyncio
async def test_oracle_failure_is_not_retried(registry, store) -> None:
    with pytest.raises(OracleError, match="model unreachable"):
        await _orchestrator(_BrokenOracle(), registry, store).handle(EVENT)


@pytest.mark.asyncio
async def test_malformed_command_is_an_oracle_error(registry, store, recorder) -> None:
    oracle = ScriptedOracle({"intent": CALL_TOOL, "capability": "test.record", "args": "not-a-record"})

    with pytest.raises(OracleError, match="malformed"):
        await _orchestrator(oracle, registry, store).handle(EVENT)

    assert recorder.invocations == []


@pytest.mark.asyncio
async def test_store_failure_is_fatal(registry, recorder) -> None:
    class _ReadOnlyStore(InMemoryCaseStore):
        async def append(self, case_id, entry) -> None:
            raise OSError("disk full")

    oracle = ScriptedOracle(call("test.record", stop=False))

    with pytest.raises(CaseStoreError, match="disk full"):
        await _orchestrator(oracle, registry, _ReadOnlyStore()).handle(EVENT)

    assert len(oracle.calls) == 1


def test_max_steps_must_be_positive(registry, store) -> None:
    with pytest.raises(ConfigurationError):
        _orchestrator(ScriptedOracle(call("test.record")), registry, store, max_steps=0)


class _ConcurrencyGauge(Capability):
    name = "test.gauge"

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def invoke(self, args: Mapping[str, Any], ctx: AgentContext) -> dict[str, Any]:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return {}


@pytest.mark.asyncio
@pytest.mark.parametrize("serialize_cases, expected_peak", [(False, 2), (True, 1)])
async def test_serialize_cases_controls_same_case_overlap(store, serialize_cases: bool, expected_peak: int) -> None:
    gauge = _ConcurrencyGauge()
    registry = CapabilityRegistry.build_from([gauge, RecordingCapability()])
    orchestrator = _orchestrator(
        ScriptedOracle(call("test.gauge")), registry, store, serialize_cases=serialize_cases
    )

    await asyncio.gather(orchestrator.handle(EVENT), orchestrator.handle(EVENT))

    assert gauge.peak == expected_peak
    assert (await store.load("T-1")).step == 2


@pytest.mark.asyncio
async def test_case_locks_are_released_after_serialized_runs(registry, store, recorder) -> None:
    orchestrator = _orchestrator(ScriptedOracle(call("test.record")), registry, store, serialize_cases=True)

    await asyncio.gather(*(orchestrator.handle({**EVENT, "caseId": f"T-{index}"}) for index in range(10)))
    gc.collect()

    assert len(orchestrator._case_locks) == 0
