"""Custom exception hierarchy for the case triage pipeline."""

from __future__ import annotations

from typing import Any, Mapping

ErrorDetails = Mapping[str, Any] | None


class ApplicationError(Exception):
    """Base exception carrying optional structured details."""

    def __init__(self, message: str, *, details: ErrorDetails = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def __str__(self) -> str:  # pragma: no cover - mirrors Exception.__str__
        return self.message


class ValidationError(ApplicationError):
    """Raised when an event or capability arguments fail validation rules."""


class ConfigurationError(ApplicationError):
    """Raised when pipeline configuration cannot be resolved into components."""


class StrategyError(ApplicationError):
    """Raised when a deterministic strategy fails to handle an event."""


class DelegationError(ApplicationError):
    """Raised when the hand-off to the agent orchestrator fails or times out."""


class CaseStoreError(ApplicationError):
    """Raised when the case store cannot load or persist state."""


class OrchestrationError(ApplicationError):
    """Base class for failures inside the decide/execute/record loop."""


class OracleError(OrchestrationError):
    """Raised when the decision oracle fails or returns a malformed command."""


class UnsupportedIntentError(OrchestrationError):
    """Raised when a command carries an intent the orchestrator cannot execute."""


class CapabilityNotAllowedError(OrchestrationError):
    """Raised when a command names a capability outside the allow-list."""


class CapabilityExecutionError(OrchestrationError):
    """Raised when an allow-listed capability fails during invocation."""


class InvalidCapabilityArgumentsError(OrchestrationError):
    """Raised when a command carries arguments its capability's schema rejects."""


def error_response(error: Exception, *, details: ErrorDetails = None) -> dict[str, Any]:
    """Normalise errors into the public API response format."""

    payload: dict[str, Any] = {}
    if isinstance(error, ApplicationError):
        payload.update(error.details)
    if details:
        payload.update(details)

    response: dict[str, Any] = {
        "status": "error",
        "error": str(error),
    }
    if payload:
        response["details"] = payload
    return response


__all__ = [
    "ApplicationError",
    "ValidationError",
    "ConfigurationError",
    "StrategyError",
    "DelegationError",
    "CaseStoreError",
    "OrchestrationError",
    "OracleError",
    "UnsupportedIntentError",
    "CapabilityNotAllowedError",
    "CapabilityExecutionError",
    "InvalidCapabilityArgumentsError",
    "error_response",
]
