"""Pydantic models describing the pipeline YAML file."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class _ConfigModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class AddressesConfig(_ConfigModel):
    """Logical channel names shared by the components."""

    inbound: str = Field(default="trade.failures", description="Inbound failure events")
    agent: str = Field(default="agent.required", description="Hand-off to the agent")
    events: str = Field(default="events.out", description="Outbound domain events")


class HttpConfig(_ConfigModel):
    port: int = Field(default=8080, ge=0, le=65535)
    route: str = Field(default="/trade/failures")
    request_timeout_ms: int = Field(default=10_000, alias="requestTimeoutMs", gt=0)

    @field_validator("route")
    @classmethod
    def _require_route(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("route must not be blank")
        return value if value.startswith("/") else f"/{value}"


class SchemaConfig(_ConfigModel):
    """Field validation applied at ingress and the case-id field name."""

    case_id_field: str = Field(default="tradeId", alias="caseIdField", min_length=1)
    allowed_fields: list[str] = Field(
        default_factory=lambda: ["tradeId", "reason", "altIds"], alias="allowedFields"
    )
    required_fields: list[str] = Field(
        default_factory=lambda: ["tradeId", "reason"], alias="requiredFields"
    )

    @model_validator(mode="after")
    def _required_subset_of_allowed(self) -> "SchemaConfig":
        missing = sorted(set(self.required_fields) - set(self.allowed_fields))
        if missing:
            raise ValueError(f"Required fields not in allowedFields: {missing}")
        return self


class AgentConfig(_ConfigModel):
    max_steps: int = Field(default=5, alias="maxSteps", ge=1)
    timeout_ms: int = Field(default=10_000, alias="timeoutMs", gt=0)
    serialize_cases: bool = Field(default=False, alias="serializeCases")


class HandlerConfig(_ConfigModel):
    """Deterministic strategy bound to one failure reason."""

    reason: str
    type: str
    params: dict[str, str] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _default_params(cls, value: Any) -> Any:
        return {} if value is None else value


class ToolConfig(_ConfigModel):
    type: str


class LlmConfig(_ConfigModel):
    type: str = Field(default="stub")
    params: dict[str, str] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _default_params(cls, value: Any) -> Any:
        return {} if value is None else value


class StoreConfig(_ConfigModel):
    type: str = Field(default="memory")
    path: Path | None = None


class PipelineConfig(_ConfigModel):
    """Root of the pipeline configuration.

    Example::

        addresses: {inbound: trade.failures, agent: agent.required, events: events.out}
        http: {port: 8080, route: /trade/failures, requestTimeoutMs: 10000}
        schema:
          caseIdField: tradeId
          allowedFields: [tradeId, reason, altIds]
          requiredFields: [tradeId, reason]
        agent: {maxSteps: 5, timeoutMs: 10000}
        handlers:
          - {reason: Missing ISIN, type: lookup-enrich, params: {identifier: ISIN}}
          - {reason: Invalid Counterparty, type: escalate}
        tools: [{type: publish-event}, {type: raise-ticket}]
        llm: {type: stub}
    """

    addresses: AddressesConfig = Field(default_factory=AddressesConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    schema_: SchemaConfig = Field(default_factory=SchemaConfig, alias="schema")
    agent: AgentConfig = Field(default_factory=AgentConfig)
    handlers: list[HandlerConfig] = Field(default_factory=list)
    tools: list[ToolConfig] = Field(default_factory=list)
    llm: LlmConfig = Field(default_factory=LlmConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)


__all__ = [
    "AddressesConfig",
    "AgentConfig",
    "HandlerConfig",
    "HttpConfig",
    "LlmConfig",
    "PipelineConfig",
    "SchemaConfig",
    "StoreConfig",
    "ToolConfig",
]
