"""Turn configuration aliases into live strategies, capabilities, oracles and stores."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from ..capabilities.base import Capability
from ..capabilities.builtin import PublishEventCapability, RaiseTicketCapability
from ..core.errors import ConfigurationError
from ..events import EventBus
from ..oracle.base import DecisionOracle
from ..oracle.openai import OpenAIOracle
from ..oracle.rulesets import trade_failure_rules
from ..store import CaseStore, InMemoryCaseStore, SqlCaseStore
from ..strategies.base import FailureStrategy
from ..strategies.builtin import EscalateStrategy, LookupEnrichStrategy
from .loader import resolve_env
from .models import HandlerConfig, LlmConfig, StoreConfig, ToolConfig

DEFAULT_SQLITE_PATH = Path("case_store.db")

StrategyBuilder = Callable[[EventBus, str, str, Mapping[str, str]], FailureStrategy]
CapabilityBuilder = Callable[[EventBus, str, str], Capability]


def _lookup_enrich(
    bus: EventBus, events_address: str, case_id_field: str, params: Mapping[str, str]
) -> FailureStrategy:
    identifier = _require_param(params, "identifier", owner="lookup-enrich")
    return LookupEnrichStrategy(bus, events_address, identifier, case_id_field=case_id_field)


def _escalate(
    bus: EventBus, events_address: str, case_id_field: str, params: Mapping[str, str]
) -> FailureStrategy:
    return EscalateStrategy(bus, events_address, case_id_field=case_id_field)


STRATEGY_TYPES: dict[str, StrategyBuilder] = {
    "lookup-enrich": _lookup_enrich,
    "escalate": _escalate,
}

CAPABILITY_TYPES: dict[str, CapabilityBuilder] = {
    "publish-event": lambda bus, address, _field: PublishEventCapability(bus, address),
    "raise-ticket": lambda bus, address, field: RaiseTicketCapability(
        bus, address, case_id_field=field
    ),
}

ORACLE_TYPES = ("stub", "openai")
STORE_TYPES = ("memory", "sqlite")


def _require_param(params: Mapping[str, str], key: str, *, owner: str) -> str:
    value = params.get(key)
    if value is None or not str(value).strip():
        raise ConfigurationError(
            f"Missing required parameter '{key}' for '{owner}'",
            details={"type": owner, "parameter": key},
        )
    return str(value)


def _unknown(kind: str, alias: str, known: Iterable[str]) -> ConfigurationError:
    return ConfigurationError(
        f"Unknown {kind} type: {alias}", details={"type": alias, "known": sorted(known)}
    )


def create_strategy(
    handler: HandlerConfig, *, bus: EventBus, events_address: str, case_id_field: str
) -> FailureStrategy:
    """Build the strategy for one ``handlers`` entry."""

    builder = STRATEGY_TYPES.get(handler.type)
    if builder is None:
        raise _unknown("handler", handler.type, STRATEGY_TYPES)
    return builder(bus, events_address, case_id_field, handler.params)


def create_strategies(
    handlers: Iterable[HandlerConfig], *, bus: EventBus, events_address: str, case_id_field: str
) -> dict[str, FailureStrategy]:
    """Build the reason -> strategy table. Duplicate reasons are rejected."""

    strategies: dict[str, FailureStrategy] = {}
    for handler in handlers:
        if handler.reason in strategies:
            raise ConfigurationError(
                f"Duplicate handler reason: {handler.reason}", details={"reason": handler.reason}
            )
        strategies[handler.reason] = create_strategy(
            handler, bus=bus, events_address=events_address, case_id_field=case_id_field
        )
    return strategies


def create_capability(
    tool: ToolConfig, *, bus: EventBus, events_address: str, case_id_field: str
) -> Capability:
    builder = CAPABILITY_TYPES.get(tool.type)
    if builder is None:
        raise _unknown("tool", tool.type, CAPABILITY_TYPES)
    return builder(bus, events_address, case_id_field)


def create_oracle(
    llm: LlmConfig,
    *,
    case_id_field: str,
    capabilities: Iterable[Mapping[str, Any]] = (),
    environ: Mapping[str, str] | None = None,
) -> DecisionOracle:
    """Build the decision oracle.

    ``stub`` is the keyword rule set for trade failures. ``openai`` needs the
    ``endpoint``, ``apiKey`` and ``model`` parameters; each may be given as a
    ``${ENV_VAR}`` placeholder.
    """

    if llm.type == "stub":
        return trade_failure_rules(case_id_field).to_oracle()
    if llm.type == "openai":
        params = {key: resolve_env(str(value), environ) for key, value in llm.params.items()}
        return OpenAIOracle(
            endpoint=_require_param(params, "endpoint", owner="openai"),
            api_key=_require_param(params, "apiKey", owner="openai"),
            model=_require_param(params, "model", owner="openai"),
            capabilities=capabilities,
        )
    raise _unknown("llm", llm.type, ORACLE_TYPES)


def create_store(store: StoreConfig) -> CaseStore:
    if store.type == "memory":
        return InMemoryCaseStore()
    if store.type == "sqlite":
        return SqlCaseStore(store.path or DEFAULT_SQLITE_PATH)
    raise _unknown("store", store.type, STORE_TYPES)


__all__ = [
    "CAPABILITY_TYPES",
    "STRATEGY_TYPES",
    "create_capability",
    "create_oracle",
    "create_store",
    "create_strategies",
    "create_strategy",
]
