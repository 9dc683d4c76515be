"""Budgeted retry policy composed with the provider circuit breaker.

A call is attempted at most ``max_attempts`` times. Between attempts the
policy waits either the server-supplied ``retry_after_seconds`` or an
exponential backoff, and spends one unit of the run's :class:`RetryBudget`.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from lifecycle_agent.core.errors import CircuitBreakerError, ProviderCallError, RunCancelledError
from lifecycle_agent.core.observability import audit_log
from lifecycle_agent.core.resilience.budget import RetryBudget
from lifecycle_agent.core.resilience.classification import classify
from lifecycle_agent.core.resilience.models import ClassifiedError, SleepFunc
from lifecycle_agent.core.resilience.registry import CircuitBreakerRegistry, get_breaker_registry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.5
DEFAULT_MULTIPLIER = 2.0
DEFAULT_MAX_DELAY = 10.0


class RetryPolicy:
    """Wraps provider calls with classification, backoff, budget and breaker.

    Args:
        registry: Breaker registry; defaults to the process registry
        max_attempts: Attempts per call-site, independent of the run budget
        base_delay: First backoff delay in seconds
        multiplier: Backoff growth factor
        max_delay: Backoff ceiling in seconds
        classifier: ``classify(provider_name, error)`` implementation
        sleep_func: Async sleep, injectable for tests
    """

    def __init__(
        self,
        registry: Optional[CircuitBreakerRegistry] = None,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        multiplier: float = DEFAULT_MULTIPLIER,
        max_delay: float = DEFAULT_MAX_DELAY,
        classifier: Callable[[str, BaseException], ClassifiedError] = classify,
        sleep_func: Optional[SleepFunc] = None,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.registry = registry if registry is not None else get_breaker_registry()
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_delay = max_delay
        self._classify = classifier
        self._sleep = sleep_func or asyncio.sleep

    def compute_delay(self, retry_index: int, classified: ClassifiedError) -> float:
        """Seconds to wait before retry number ``retry_index`` (0-based).

        A positive server directive always wins over the backoff schedule.
        """
        if classified.retry_after_seconds is not None and classified.retry_after_seconds > 0:
            return classified.retry_after_seconds
        return min(self.base_delay * (self.multiplier**retry_index), self.max_delay)

    async def wrap_call(
        self,
        provider_name: str,
        retry_budget: RetryBudget,
        call: Callable[[], Awaitable[T]],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> T:
        """Run ``call`` under the policy.

        Raises:
            CircuitBreakerError: The provider's breaker rejected the attempt
            ProviderCallError: Terminal classified failure
            RunCancelledError: ``cancel_event`` was set before a retry
        """
        breaker = self.registry.get_breaker(provider_name)
        attempt = 0

        while True:
            attempt += 1
            if cancel_event is not None and cancel_event.is_set():
                raise RunCancelledError(f"Run cancelled before attempt {attempt} to {provider_name}")

            if not breaker.can_execute():
                raise CircuitBreakerError(
                    f"Circuit breaker open for provider {provider_name}",
                    breaker_name=provider_name,
                    state=breaker.state,
                    retry_after=breaker.retry_after(),
                )

            try:
                result = await call()
            except (asyncio.CancelledError, RunCancelledError):
                breaker.release_trial()
                raise
            except Exception as exc:
                classified = self._classify(provider_name, exc)
                if classified.retryable:
                    breaker.record_failure()
                else:
                    # The provider answered; only retryable failures count against it.
                    breaker.record_success()

                stop_reason = self._stop_reason(classified, retry_budget, attempt, breaker.is_open)
                if stop_reason is not None:
                    logger.warning(
                        "Provider %s call failed (%s, attempt %d/%d): %s",
                        provider_name,
                        classified.kind.value,
                        attempt,
                        self.max_attempts,
                        stop_reason,
                    )
                    raise ProviderCallError(classified, attempts=attempt) from exc

                if cancel_event is not None and cancel_event.is_set():
                    raise RunCancelledError(f"Run cancelled while retrying {provider_name}") from exc

                retry_budget.consume()
                delay = self.compute_delay(attempt - 1, classified)
                logger.warning(
                    "Retrying %s after %s error in %.2fs (attempt %d/%d, budget %d/%d)",
                    provider_name,
                    classified.kind.value,
                    delay,
                    attempt + 1,
                    self.max_attempts,
                    retry_budget.consumed,
                    retry_budget.max_retries,
                )
                audit_log(
                    "retry_attempt",
                    provider=provider_name,
                    attempt=attempt,
                    error_kind=classified.kind.value,
                    delay_seconds=delay,
                    server_directed=classified.retry_after_seconds is not None,
                    budget_consumed=retry_budget.consumed,
                )
                await self._sleep(delay)
                continue

            breaker.record_success()
            return result

    def _stop_reason(
        self,
        classified: ClassifiedError,
        retry_budget: RetryBudget,
        attempt: int,
        breaker_open: bool,
    ) -> Optional[str]:
        if not classified.retryable:
            return "not retryable"
        if attempt >= self.max_attempts:
            return "max attempts reached"
        if not retry_budget.can_retry():
            return "retry budget exhausted"
        if breaker_open:
            return "circuit breaker open"
        return None

