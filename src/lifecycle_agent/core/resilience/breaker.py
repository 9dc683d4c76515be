"""Per-provider circuit breaker.

States move ``closed -> open -> half-open -> closed|open``. Every transition
happens under the breaker's lock, and the open-to-half-open transition is
computed from a monotonic clock.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from lifecycle_agent.core.observability import audit_log

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_RECOVERY_TIMEOUT = 30.0

StateListener = Callable[[str, "CircuitState", "CircuitState"], None]


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass(frozen=True)
class ProviderCircuitState:
    """Point-in-time snapshot of one provider's breaker."""

    provider_name: str
    status: CircuitState
    consecutive_failures: int
    opened_at: Optional[float]


class CircuitBreaker:
    """Consecutive-failure breaker guarding a single provider.

    Args:
        name: Provider name this breaker guards
        failure_threshold: Consecutive retryable failures before opening
        recovery_timeout: Seconds spent open before a trial call is allowed
        half_open_max_calls: Trial calls admitted while half-open
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        recovery_timeout: float = DEFAULT_RECOVERY_TIMEOUT,
        half_open_max_calls: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_max_calls = half_open_max_calls
        self._clock = clock
        self._lock = threading.Lock()
        self._listeners: List[StateListener] = []

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self.half_open_calls = 0

    def add_listener(self, listener: StateListener) -> None:
        """Register ``listener(name, old_state, new_state)`` for transitions.

        Listeners run under the breaker lock and must not call back into it.
        """
        with self._lock:
            self._listeners.append(listener)

    def _transition(self, new_state: CircuitState) -> None:
        # Caller holds self._lock.
        old_state = self.state
        if old_state == new_state:
            return
        self.state = new_state
        if new_state == CircuitState.OPEN:
            self.opened_at = self._clock()
            self.half_open_calls = 0
            logger.error(
                "circuit breaker OPEN provider=%s failures=%d recovery_timeout=%.1fs",
                self.name,
                self.failure_count,
                self.recovery_timeout,
            )
        elif new_state == CircuitState.CLOSED:
            self.opened_at = None
            self.half_open_calls = 0
            logger.info("circuit breaker CLOSED provider=%s", self.name)
        else:
            self.half_open_calls = 0
            logger.info("circuit breaker HALF-OPEN provider=%s", self.name)

        audit_log(
            "circuit_state_change",
            provider=self.name,
            from_state=old_state.value,
            to_state=new_state.value,
            failure_count=self.failure_count,
        )
        for listener in list(self._listeners):
            try:
                listener(self.name, old_state, new_state)
            except Exception:
                logger.exception("Circuit breaker listener failed for %s", self.name)

    def _cooldown_elapsed(self) -> bool:
        return self.opened_at is not None and self._clock() - self.opened_at >= self.recovery_timeout

    def can_execute(self) -> bool:
        """Admit a call, moving open to half-open once the cool-down elapsed.

        In half-open only ``half_open_max_calls`` trial calls are admitted;
        each admitted trial must end in :meth:`record_success`,
        :meth:`record_failure`, or :meth:`release_trial`.
        """
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return True
            if self.state == CircuitState.OPEN:
                if not self._cooldown_elapsed():
                    return False
                self._transition(CircuitState.HALF_OPEN)
            if self.half_open_calls < self.half_open_max_calls:
                self.half_open_calls += 1
                return True
            return False

    def is_available(self) -> bool:
        """Non-mutating check whether a call would currently be admitted."""
        with self._lock:
            if self.state == CircuitState.CLOSED:
                return True
            if self.state == CircuitState.OPEN:
                return self._cooldown_elapsed()
            return self.half_open_calls < self.half_open_max_calls

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self.state == CircuitState.OPEN

    def retry_after(self) -> Optional[float]:
        """Seconds until an open breaker admits a trial call."""
        with self._lock:
            if self.state != CircuitState.OPEN or self.opened_at is None:
                return None
            return max(0.0, self.recovery_timeout - (self._clock() - self.opened_at))

    def record_success(self) -> None:
        with self._lock:
            self.failure_count = 0
            if self.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.CLOSED)

    def record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            if self.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif self.state == CircuitState.CLOSED and self.failure_count >= self.failure_threshold:
                self._transition(CircuitState.OPEN)

    def release_trial(self) -> None:
        """Give back a half-open trial slot whose call ended without a verdict."""
        with self._lock:
            if self.state == CircuitState.HALF_OPEN and self.half_open_calls > 0:
                self.half_open_calls -= 1

    def reset(self) -> None:
        with self._lock:
            self.failure_count = 0
            self._transition(CircuitState.CLOSED)

    def snapshot(self) -> ProviderCircuitState:
        with self._lock:
            return ProviderCircuitState(
                provider_name=self.name,
                status=self.state,
                consecutive_failures=self.failure_count,
                opened_at=self.opened_at,
            )
