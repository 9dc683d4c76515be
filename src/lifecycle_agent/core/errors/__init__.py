"""Unified error hierarchy for lifecycle-agent.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from lifecycle_agent.core.errors.provider import LLMError, RateLimitError
    from lifecycle_agent.core.errors import ProviderCallError
"""

from lifecycle_agent.core.errors.orchestration import (
    BudgetExceededError,
    CompressionError,
    ConfigError,
    LoopExceededError,
    UnknownProviderError,
)
from lifecycle_agent.core.errors.provider import (
    AuthenticationError,
    InvalidRequestError,
    LLMError,
    NotFoundError,
    PermissionDeniedError,
    ProviderConnectionError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
)
from lifecycle_agent.core.errors.resilience import (
    CircuitBreakerError,
    ProviderCallError,
    RunCancelledError,
)

__all__ = [
    # Provider
    "LLMError",
    "RateLimitError",
    "AuthenticationError",
    "PermissionDeniedError",
    "InvalidRequestError",
    "NotFoundError",
    "ServerError",
    "ProviderConnectionError",
    "ProviderTimeoutError",
    # Resilience
    "CircuitBreakerError",
    "ProviderCallError",
    "RunCancelledError",
    # Orchestration
    "LoopExceededError",
    "BudgetExceededError",
    "UnknownProviderError",
    "CompressionError",
    "ConfigError",
]
