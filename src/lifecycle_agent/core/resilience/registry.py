"""Process-wide registry holding one circuit breaker per provider name."""

import logging
import threading
import time
from typing import Callable, Dict, Optional

from lifecycle_agent.core.resilience.breaker import (
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_RECOVERY_TIMEOUT,
    CircuitBreaker,
    ProviderCircuitState,
)

logger = logging.getLogger(__name__)


class CircuitBreakerRegistry:
    """Lazily creates and owns exactly one breaker per provider name.

    The registry is the only state shared between concurrent agent runs;
    its map is guarded by a lock and each breaker guards its own counters.
    """

    def __init__(
        self,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        recovery_timeout: float = DEFAULT_RECOVERY_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get_breaker(self, provider_name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(provider_name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name=provider_name,
                    failure_threshold=self.failure_threshold,
                    recovery_timeout=self.recovery_timeout,
                    clock=self._clock,
                )
                self._breakers[provider_name] = breaker
                logger.debug("Created circuit breaker for provider %s", provider_name)
            return breaker

    def reset_all(self) -> None:
        """Drop every breaker; the next lookup starts closed."""
        with self._lock:
            self._breakers.clear()

    def snapshot(self) -> Dict[str, ProviderCircuitState]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.snapshot() for breaker in breakers}

    def __contains__(self, provider_name: str) -> bool:
        with self._lock:
            return provider_name in self._breakers


_registry: Optional[CircuitBreakerRegistry] = None
_registry_lock = threading.Lock()


def get_breaker_registry() -> CircuitBreakerRegistry:
    """Return the process-default registry, creating it on first use."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = CircuitBreakerRegistry()
    return _registry


def reset_breaker_registry_for_testing() -> None:
    """Discard the process-default registry."""
    global _registry
    with _registry_lock:
        _registry = None
