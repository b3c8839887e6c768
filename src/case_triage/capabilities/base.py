"""Contract shared by every capability the agent may invoke."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Mapping

from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate as jsonschema_validate

from ..core.errors import InvalidCapabilityArgumentsError
from ..models import AgentContext


class Capability(ABC):
    """A named, side-effecting action reachable only through the registry.

    ``input_schema`` follows JSON Schema and doubles as the MCP ``inputSchema``
    field when capabilities are listed for discovery or prompt building.
    """

    name: ClassVar[str]
    description: ClassVar[str] = ""
    input_schema: ClassVar[Mapping[str, Any]] = {"type": "object"}

    def validate_args(self, args: Mapping[str, Any]) -> None:
        try:
            jsonschema_validate(dict(args), dict(self.input_schema))
        except JSONSchemaValidationError as exc:
            raise InvalidCapabilityArgumentsError(
                f"Invalid arguments for capability '{self.name}': {exc.message}",
                details={"capability": self.name},
            ) from exc

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": dict(self.input_schema),
        }

    @abstractmethod
    async def invoke(self, args: Mapping[str, Any], ctx: AgentContext) -> dict[str, Any]:
        """Run the action and return a record describing what happened."""


__all__ = ["Capability"]
