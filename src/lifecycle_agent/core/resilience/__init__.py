"""Provider resilience: error classification, retry budget, circuit breakers, retry policy.

Usage:
    from lifecycle_agent.core.resilience import RetryBudget, RetryPolicy

    policy = RetryPolicy()
    budget = RetryBudget(max_retries=10)
    response = await policy.wrap_call("anthropic", budget, lambda: client.send(request))
"""

from lifecycle_agent.core.resilience.breaker import (
    CircuitBreaker,
    CircuitState,
    ProviderCircuitState,
)
from lifecycle_agent.core.resilience.budget import DEFAULT_MAX_RETRIES, RetryBudget
from lifecycle_agent.core.resilience.classification import (
    MAX_RETRY_AFTER_SECONDS,
    classify,
    extract_retry_after,
    get_status_code,
    is_auth_error,
    register_classification_rule,
)
from lifecycle_agent.core.resilience.messages import (
    breaker_open_message,
    build_user_message,
    provider_display_name,
    suggest_action,
)
from lifecycle_agent.core.resilience.models import (
    ClassifiedError,
    ErrorCategory,
    ErrorKind,
    SleepFunc,
    SuggestedAction,
    is_retryable,
)
from lifecycle_agent.core.resilience.policy import RetryPolicy
from lifecycle_agent.core.resilience.registry import (
    CircuitBreakerRegistry,
    get_breaker_registry,
    reset_breaker_registry_for_testing,
)

__all__ = [
    # Models
    "ErrorKind",
    "ErrorCategory",
    "SuggestedAction",
    "ClassifiedError",
    "SleepFunc",
    "is_retryable",
    # Classification
    "classify",
    "extract_retry_after",
    "get_status_code",
    "is_auth_error",
    "register_classification_rule",
    "MAX_RETRY_AFTER_SECONDS",
    # Budget
    "RetryBudget",
    "DEFAULT_MAX_RETRIES",
    # Breakers
    "CircuitBreaker",
    "CircuitState",
    "ProviderCircuitState",
    "CircuitBreakerRegistry",
    "get_breaker_registry",
    "reset_breaker_registry_for_testing",
    # Policy
    "RetryPolicy",
    # Messages
    "build_user_message",
    "suggest_action",
    "breaker_open_message",
    "provider_display_name",
]
