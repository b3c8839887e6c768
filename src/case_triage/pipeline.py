"""Wire a :class:`PipelineConfig` into a running router."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .capabilities.registry import CapabilityRegistry
from .config.factories import create_capability, create_oracle, create_store, create_strategies
from .config.models import PipelineConfig
from .core.logging import get_logger
from .events import EventBus, EventLogSink
from .oracle.base import DecisionOracle
from .orchestrator import AgentOrchestrator
from .router import DeterministicRouter
from .store import CaseStore

logger = get_logger(__name__)


@dataclass(slots=True)
class Pipeline:
    """Live components built from one configuration."""

    config: PipelineConfig
    bus: EventBus
    sink: EventLogSink
    store: CaseStore
    capabilities: CapabilityRegistry
    oracle: DecisionOracle
    orchestrator: AgentOrchestrator
    router: DeterministicRouter

    async def submit(self, event: Mapping[str, Any]) -> dict[str, Any]:
        return await self.router.submit(event)

    async def aclose(self) -> None:
        await self.oracle.aclose()
        await self.store.aclose()


def build_pipeline(
    config: PipelineConfig,
    *,
    oracle: DecisionOracle | None = None,
    store: CaseStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> Pipeline:
    """Construct every component described by ``config``.

    ``oracle`` and ``store`` override what the configuration names, which is
    how tests plug in scripted oracles.
    """

    case_id_field = config.schema_.case_id_field
    events_address = config.addresses.events

    bus = EventBus()
    sink = EventLogSink(events_address).attach(bus)

    capabilities = CapabilityRegistry.build_from(
        create_capability(tool, bus=bus, events_address=events_address, case_id_field=case_id_field)
        for tool in config.tools
    )
    if oracle is None:
        oracle = create_oracle(
            config.llm,
            case_id_field=case_id_field,
            capabilities=capabilities.describe(),
            environ=environ,
        )
    if store is None:
        store = create_store(config.store)

    orchestrator = AgentOrchestrator(
        oracle=oracle,
        capabilities=capabilities,
        store=store,
        case_id_field=case_id_field,
        max_steps=config.agent.max_steps,
        serialize_cases=config.agent.serialize_cases,
    )
    strategies = create_strategies(
        config.handlers, bus=bus, events_address=events_address, case_id_field=case_id_field
    )
    router = DeterministicRouter(
        strategies,
        orchestrator,
        agent_timeout_ms=config.agent.timeout_ms,
        agent_address=config.addresses.agent,
    )

    logger.info(
        "pipeline.built",
        handlers=sorted(strategies),
        capabilities=capabilities.names(),
        oracle=type(oracle).__name__,
        store=type(store).__name__,
    )
    return Pipeline(
        config=config,
        bus=bus,
        sink=sink,
        store=store,
        capabilities=capabilities,
        oracle=oracle,
        orchestrator=orchestrator,
        router=router,
    )


__all__ = ["Pipeline", "build_pipeline"]
