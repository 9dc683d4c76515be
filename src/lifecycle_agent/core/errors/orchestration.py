"""Protective-stop and configuration errors raised inside the orchestration loop."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from lifecycle_agent.core.orchestration.loop_detector import LoopViolation
    from lifecycle_agent.core.tokens.budget import TokenBudget


class LoopExceededError(Exception):
    """The loop detector stopped a runaway run.

    Attributes:
        violation: Which ceiling was crossed, with a remediation hint.
    """

    def __init__(self, violation: LoopViolation):
        super().__init__(violation.message)
        self.violation = violation


class BudgetExceededError(Exception):
    """The assembled prompt no longer fits the provider's context window.

    Attributes:
        budget: The budget snapshot that failed.
    """

    def __init__(self, budget: TokenBudget):
        super().__init__(
            f"Token budget exceeded for {budget.provider}: "
            f"{budget.used} used of {budget.limit} ({-budget.remaining} over)"
        )
        self.budget = budget


class UnknownProviderError(ValueError):
    """No context limit is configured for the provider.

    Attributes:
        provider: The provider name that was looked up.
    """

    def __init__(self, provider: str, known: Optional[list] = None):
        known_str = ", ".join(sorted(known)) if known else "none"
        super().__init__(f"No token limit configured for provider '{provider}' (known: {known_str})")
        self.provider = provider


class ConfigError(ValueError):
    """Invalid configuration value."""


class CompressionError(Exception):
    """The provider's conversation summary could not be used."""
