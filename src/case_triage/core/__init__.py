"""Core utilities shared across the case triage pipeline."""

from .settings import Settings, get_settings
from .logging import configure_logging, get_logger
from .errors import (
    ApplicationError,
    CapabilityExecutionError,
    CapabilityNotAllowedError,
    CaseStoreError,
    ConfigurationError,
    DelegationError,
    InvalidCapabilityArgumentsError,
    OracleError,
    OrchestrationError,
    StrategyError,
    UnsupportedIntentError,
    ValidationError,
    error_response,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "ApplicationError",
    "CapabilityExecutionError",
    "CapabilityNotAllowedError",
    "CaseStoreError",
    "ConfigurationError",
    "DelegationError",
    "InvalidCapabilityArgumentsError",
    "OracleError",
    "OrchestrationError",
    "StrategyError",
    "UnsupportedIntentError",
    "ValidationError",
    "error_response",
]
