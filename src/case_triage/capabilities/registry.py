"""Allow-list of capabilities the orchestrator is permitted to invoke."""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

from ..core.errors import CapabilityNotAllowedError, ConfigurationError
from .base import Capability


class CapabilityRegistry:
    """Closed, read-only ``name -> capability`` mapping built at startup.

    This is the only path from oracle output to real side effects, so names are
    resolved exactly: unknown names raise, nothing is guessed or substituted.
    """

    def __init__(self, capabilities: Mapping[str, Capability] | None = None) -> None:
        self._capabilities: Mapping[str, Capability] = MappingProxyType(dict(capabilities or {}))

    @classmethod
    def build_from(cls, capabilities: Iterable[Capability]) -> "CapabilityRegistry":
        """Build a registry, rejecting two capabilities that share a name."""

        mapping: dict[str, Capability] = {}
        for capability in capabilities:
            if capability.name in mapping:
                raise ConfigurationError(
                    f"Duplicate capability name: {capability.name}",
                    details={"capability": capability.name},
                )
            mapping[capability.name] = capability
        return cls(mapping)

    @classmethod
    def merge(
        cls, base: "CapabilityRegistry", extras: Iterable[Capability]
    ) -> "CapabilityRegistry":
        """Return a new registry where ``extras`` replace same-named entries of ``base``."""

        mapping = dict(base._capabilities)
        for capability in extras:
            mapping[capability.name] = capability
        return cls(mapping)

    def resolve(self, name: str) -> Capability:
        try:
            return self._capabilities[name]
        except KeyError as exc:
            raise CapabilityNotAllowedError(
                f"Capability not allow-listed: {name}",
                details={"capability": name, "allowed": self.names()},
            ) from exc

    def names(self) -> list[str]:
        return sorted(self._capabilities)

    def describe(self) -> list[dict[str, Any]]:
        return [self._capabilities[name].describe() for name in self.names()]

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._capabilities)


__all__ = ["CapabilityRegistry"]
