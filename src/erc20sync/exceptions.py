"""Error types surfaced by the transfer resolution core."""

from typing import Any


class ChainError(Exception):
    """Single error kind returned to callers. Subclasses only tag the cause."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class ValidationError(ChainError):
    """Bad caller input (dates, addresses). Raised before any network call."""


class ConfigurationError(ChainError):
    """Unsupported network or missing credential for the selected source."""


class RemoteError(ChainError):
    """A ledger/provider call failed after exhausting its retry budget."""


class ExternalServiceError(Exception):
    """Transient failure of a single remote attempt. Retriable."""
