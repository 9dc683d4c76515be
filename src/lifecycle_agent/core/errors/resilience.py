"""Resilience error classes raised by the retry policy and circuit breakers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from lifecycle_agent.core.resilience.breaker import CircuitState
    from lifecycle_agent.core.resilience.models import ClassifiedError


class CircuitBreakerError(Exception):
    """Circuit breaker is open and rejecting requests.

    Attributes:
        breaker_name: Name of the circuit breaker (the provider name).
        state: Current state of the breaker.
        retry_after: Seconds until recovery timeout.
    """

    def __init__(
        self,
        message: str,
        breaker_name: Optional[str] = None,
        state: Optional[CircuitState] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.breaker_name = breaker_name
        self.state = state
        self.retry_after = retry_after


class ProviderCallError(Exception):
    """A provider call failed terminally after classification.

    The raw provider error is available as ``__cause__``; callers should
    only rely on ``classified``.

    Attributes:
        classified: The normalized classification of the failure.
        attempts: Number of attempts made for this call.
    """

    def __init__(self, classified: ClassifiedError, attempts: int = 1):
        super().__init__(classified.message or classified.kind.value)
        self.classified = classified
        self.attempts = attempts


class RunCancelledError(Exception):
    """The caller cancelled the run; no further retries or tool calls happen."""
