"""Pytest fixtures for the case triage test suite."""

from __future__ import annotations

from typing import Any

import pytest

from case_triage.capabilities import (
    CapabilityRegistry,
    PublishEventCapability,
    RaiseTicketCapability,
)
from case_triage.config import PipelineConfig
from case_triage.events import EventBus, EventLogSink
from case_triage.store import InMemoryCaseStore

from .fixtures import EVENTS_ADDRESS, FailingCapability, RecordingCapability


@pytest.fixture
def store() -> InMemoryCaseStore:
    return InMemoryCaseStore()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def sink(bus: EventBus) -> EventLogSink:
    return EventLogSink(EVENTS_ADDRESS).attach(bus)


@pytest.fixture
def recorder() -> RecordingCapability:
    return RecordingCapability()


@pytest.fixture
def registry(bus: EventBus, recorder: RecordingCapability) -> CapabilityRegistry:
    return CapabilityRegistry.build_from(
        [
            recorder,
            FailingCapability(),
            PublishEventCapability(bus, EVENTS_ADDRESS),
            RaiseTicketCapability(bus, EVENTS_ADDRESS, case_id_field="caseId"),
        ]
    )


@pytest.fixture
def pipeline_data() -> dict[str, Any]:
    return {
        "addresses": {"inbound": "trade.failures", "agent": "agent.required", "events": EVENTS_ADDRESS},
        "http": {"port": 8080, "route": "/trade/failures", "requestTimeoutMs": 5000},
        "schema": {
            "caseIdField": "caseId",
            "allowedFields": ["caseId", "reason", "altIds"],
            "requiredFields": ["caseId", "reason"],
        },
        "agent": {"maxSteps": 5, "timeoutMs": 5000},
        "handlers": [
            {"reason": "Missing ISIN", "type": "lookup-enrich", "params": {"identifier": "ISIN"}},
            {"reason": "Invalid Counterparty", "type": "escalate"},
        ],
        "tools": [{"type": "publish-event"}, {"type": "raise-ticket"}],
        "llm": {"type": "stub"},
        "store": {"type": "memory"},
    }


@pytest.fixture
def pipeline_config(pipeline_data: dict[str, Any]) -> PipelineConfig:
    return PipelineConfig.model_validate(pipeline_data)
