"""Token budget accounting against per-provider context limits."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from lifecycle_agent.core.errors import UnknownProviderError
from lifecycle_agent.core.tokens.estimation import count_tokens
from lifecycle_agent.core.tokens.sections import PromptSectionRegistry, get_default_section_registry

logger = logging.getLogger(__name__)

PROVIDER_TOKEN_LIMITS: Dict[str, int] = {
    "anthropic": 180_000,
    "openai": 110_000,
    "gemini": 900_000,
}


@dataclass(frozen=True)
class TokenBreakdown:
    """Attribution of system-prompt tokens.

    ``total`` is always the sum of the section counts plus both overhead buckets.
    """

    sections: Dict[str, int] = field(default_factory=dict)
    provider_augmentation: int = 0
    environment_context: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "sections": dict(self.sections),
            "providerAugmentation": self.provider_augmentation,
            "environmentContext": self.environment_context,
            "total": self.total,
        }


@dataclass(frozen=True)
class TokenBudget:
    """Computed budget snapshot; never persisted."""

    provider: str
    limit: int
    used: int
    remaining: int
    over_budget: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "provider": self.provider,
            "limit": self.limit,
            "used": self.used,
            "remaining": self.remaining,
            "overBudget": self.over_budget,
        }


class TokenBudgetTracker:
    """Counts prompt tokens and compares them with provider limits.

    Args:
        limits: Overrides merged over :data:`PROVIDER_TOKEN_LIMITS`
        registry: Prompt sections used when no section counts are supplied
    """

    def __init__(
        self,
        limits: Optional[Mapping[str, int]] = None,
        registry: Optional[PromptSectionRegistry] = None,
    ):
        self.limits: Dict[str, int] = dict(PROVIDER_TOKEN_LIMITS)
        if limits:
            self.limits.update(limits)
        self.registry = registry or get_default_section_registry()

    def has_limit(self, provider: str) -> bool:
        return provider in self.limits

    def get_limit(self, provider: str) -> int:
        try:
            return self.limits[provider]
        except KeyError:
            raise UnknownProviderError(provider, list(self.limits)) from None

    def count_sections(self) -> Dict[str, int]:
        return {section.id: count_tokens(section.content) for section in self.registry.sections()}

    def get_token_breakdown(
        self,
        system_prompt: str,
        section_counts: Optional[Mapping[str, int]] = None,
    ) -> TokenBreakdown:
        """Split the prompt's tokens into sections and two overhead buckets.

        Supplied ``section_counts`` are trusted as-is. The unexplained gap is
        split with floor division, remainder going to ``environment_context``.
        """
        sections = dict(section_counts) if section_counts is not None else self.count_sections()
        section_total = sum(sections.values())
        overhead = max(0, count_tokens(system_prompt) - section_total)
        provider_augmentation = overhead // 2
        environment_context = overhead - provider_augmentation
        return TokenBreakdown(
            sections=sections,
            provider_augmentation=provider_augmentation,
            environment_context=environment_context,
            total=section_total + provider_augmentation + environment_context,
        )

    def check_budget(
        self,
        system_prompt: str,
        provider: str,
        token_count: Optional[int] = None,
    ) -> TokenBudget:
        """Compare the prompt (or a precomputed count) with the provider limit.

        Raises:
            UnknownProviderError: No limit is known for ``provider``
        """
        limit = self.get_limit(provider)
        used = token_count if token_count is not None else count_tokens(system_prompt)
        budget = TokenBudget(
            provider=provider,
            limit=limit,
            used=used,
            remaining=limit - used,
            over_budget=used > limit,
        )
        if budget.over_budget:
            logger.warning("Token budget exceeded for %s: %d/%d", provider, used, limit)
        return budget


_default_tracker = TokenBudgetTracker()


def get_token_breakdown(
    system_prompt: str,
    section_counts: Optional[Mapping[str, int]] = None,
) -> TokenBreakdown:
    return _default_tracker.get_token_breakdown(system_prompt, section_counts)


def check_budget(system_prompt: str, provider: str, token_count: Optional[int] = None) -> TokenBudget:
    return _default_tracker.check_budget(system_prompt, provider, token_count)
