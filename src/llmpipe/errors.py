"""Application-level exception types for llmpipe."""

from __future__ import annotations


class LlmPipeError(Exception):
    """Base exception for llmpipe."""


class ConfigurationError(LlmPipeError):
    """Raised when configuration values cannot be resolved."""


class UnknownSchemaError(ConfigurationError):
    """Raised when the schema selector names no known provider."""


class InvocationError(LlmPipeError):
    """Base exception for failures while invoking a provider."""


class SetupError(InvocationError):
    """Raised when a request cannot be built before any network I/O."""


class TransportError(InvocationError):
    """Raised on connection failure, timeout or non-success status."""

    def __init__(self, message: str, *, status: int | None = None, detail: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.detail = detail

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is not None:
            base = f"{base} (status={self.status})"
        if self.detail:
            base = f"{base}: {self.detail}"
        return base


class IncompleteStreamError(InvocationError):
    """Raised when the transport closed before an end-of-turn signal."""


class ExpressionError(LlmPipeError):
    """Raised when a pass expression fails to compile."""


class EvaluationError(LlmPipeError):
    """Raised when a pass expression fails to evaluate."""


class NotBooleanError(EvaluationError):
    """Raised when a pass expression does not reduce to a boolean."""

    def __init__(self, value: object) -> None:
        super().__init__(f"pass expression must evaluate to a boolean, got {type(value).__name__}: {value!r}")
        self.value = value
