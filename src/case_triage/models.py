"""Data types shared by the router, the orchestrator and the case store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

FailureEvent = Mapping[str, Any]

CALL_TOOL = "CALL_TOOL"


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Command(BaseModel):
    """Decision returned by the oracle for a single loop iteration.

    ``capability`` is also accepted under the ``tool`` key. Keys outside the
    schema are kept so they survive into the audit log.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    intent: str = Field(default="", description="Action type; only CALL_TOOL is executable")
    capability: str = Field(
        default="",
        validation_alias=AliasChoices("capability", "tool"),
        description="Name of the allow-listed capability to invoke",
    )
    args: dict[str, Any] = Field(default_factory=dict, description="Arguments forwarded to the capability")
    stop: bool = Field(default=True, description="True when this is the final step")

    @field_validator("intent", "capability", mode="before")
    @classmethod
    def _coerce_missing_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("args", mode="before")
    @classmethod
    def _coerce_missing_args(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("stop", mode="before")
    @classmethod
    def _coerce_missing_stop(cls, value: Any) -> Any:
        return True if value is None else value

    @property
    def executable(self) -> bool:
        return self.intent == CALL_TOOL


class LogEntry(BaseModel):
    """One completed decide/execute/record cycle."""

    model_config = ConfigDict(frozen=True)

    step: int = Field(..., ge=0)
    command: Command
    result: dict[str, Any] = Field(default_factory=dict)
    at: datetime = Field(default_factory=utcnow)


class CaseState(BaseModel):
    """Accumulated state for a single case."""

    model_config = ConfigDict(populate_by_name=True)

    case_id: str = Field(..., alias="caseId")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    step: int = Field(default=0, ge=0)
    last: LogEntry | None = None
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    def as_payload(self) -> dict[str, Any]:
        """Return the JSON-friendly representation handed to oracles."""

        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True, slots=True)
class AgentContext:
    """Immutable context carried through every step of one invocation."""

    correlation_id: str
    case_id: str
    state: CaseState


__all__ = [
    "AgentContext",
    "CALL_TOOL",
    "CaseState",
    "Command",
    "FailureEvent",
    "LogEntry",
    "utcnow",
]
