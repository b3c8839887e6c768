"""Allow-listed capabilities and the registry that guards them."""

from .base import Capability
from .builtin import PublishEventCapability, RaiseTicketCapability
from .registry import CapabilityRegistry

__all__ = [
    "Capability",
    "CapabilityRegistry",
    "PublishEventCapability",
    "RaiseTicketCapability",
]
