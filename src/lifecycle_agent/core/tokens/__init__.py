"""Token budget tracking.

Usage:
    from lifecycle_agent.core.tokens import check_budget, get_token_breakdown

    budget = check_budget(system_prompt, "anthropic")
    if budget.over_budget:
        ...
"""

from lifecycle_agent.core.tokens.budget import (
    PROVIDER_TOKEN_LIMITS,
    TokenBreakdown,
    TokenBudget,
    TokenBudgetTracker,
    check_budget,
    get_token_breakdown,
)
from lifecycle_agent.core.tokens.estimation import DEFAULT_ENCODING, count_tokens
from lifecycle_agent.core.tokens.sections import (
    DEFAULT_SECTIONS,
    PromptSection,
    PromptSectionRegistry,
    get_default_section_registry,
)

__all__ = [
    "count_tokens",
    "DEFAULT_ENCODING",
    "PromptSection",
    "PromptSectionRegistry",
    "DEFAULT_SECTIONS",
    "get_default_section_registry",
    "PROVIDER_TOKEN_LIMITS",
    "TokenBreakdown",
    "TokenBudget",
    "TokenBudgetTracker",
    "check_budget",
    "get_token_breakdown",
]
