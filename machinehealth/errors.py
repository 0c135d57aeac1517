"""
Exception classes for the MachineHealthCheck operator.

Configuration errors are policy-authoring defects and are surfaced without
mutation. Store errors are transient and retried by the hosting loop.
"""

from typing import Any, Dict, List, Optional


class HealthCheckError(Exception):
    """Base exception class for the operator."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class ConfigurationError(HealthCheckError):
    """Raised when a MachineHealthCheck is misconfigured."""
    pass


class InvalidSelectorError(ConfigurationError):
    """Raised when a label selector cannot be parsed."""
    pass


class InvalidTimeoutError(ConfigurationError):
    """Raised when an unhealthy condition timeout is not a valid duration."""
    pass


class InvalidAnnotationError(HealthCheckError):
    """Raised when a node's machine annotation is missing or malformed."""
    pass


class StoreError(HealthCheckError):
    """Raised when a cluster store operation fails."""
    pass


class NotFoundError(StoreError):
    """Raised when the requested object does not exist."""
    pass


class ConflictError(StoreError):
    """Raised when a write loses an optimistic-concurrency race."""
    pass


class RemediationError(HealthCheckError):
    """Raised when remediating an unhealthy target fails."""
    pass


class ReconcileError(HealthCheckError):
    """Aggregates several failures from one reconciliation pass."""

    def __init__(self, message: str, errors: List[Exception], context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.errors = errors

    def __str__(self) -> str:
        details = "; ".join(str(e) for e in self.errors)
        return f"{super().__str__()}: {details}"

    @property
    def transient(self) -> bool:
        """True when every wrapped failure is worth a quick retry."""
        return all(isinstance(e, ConflictError) for e in self.errors)
