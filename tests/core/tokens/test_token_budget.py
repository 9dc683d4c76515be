"""Tests for token counting, prompt breakdowns, and budget checks."""

import pytest

from lifecycle_agent.core.errors import UnknownProviderError
from lifecycle_agent.core.tokens import (
    PROVIDER_TOKEN_LIMITS,
    PromptSection,
    PromptSectionRegistry,
    TokenBudgetTracker,
    check_budget,
    count_tokens,
    get_default_section_registry,
    get_token_breakdown,
)


@pytest.fixture
def registry():
    return PromptSectionRegistry(
        [
            PromptSection(id="rules", order=20, content="never guess"),
            PromptSection(id="role", order=10, content="you debug preview environments"),
        ]
    )


@pytest.fixture
def tracker(registry):
    return TokenBudgetTracker(registry=registry)


class TestCountTokens:
    def test_empty_and_none_are_zero(self):
        assert count_tokens("") == 0
        assert count_tokens(None) == 0

    def test_counts_are_deterministic(self):
        assert count_tokens("kubectl get pods") == count_tokens("kubectl get pods") == 3


class TestPromptSections:
    def test_sections_are_ordered(self, registry):
        assert [s.id for s in registry.sections()] == ["role", "rules"]
        assert registry.assemble() == "you debug preview environments\n\nnever guess"

    def test_register_replaces_by_id(self, registry):
        registry.register(PromptSection(id="rules", order=5, content="be brief"))
        assert len(registry) == 2
        assert registry.get("rules").content == "be brief"
        assert registry.sections()[0].id == "rules"

    def test_default_registry_has_core_sections(self):
        ids = [s.id for s in get_default_section_registry().sections()]
        assert ids == ["foundations", "investigation", "safety", "reference"]


class TestTokenBreakdown:
    def test_overhead_split_between_buckets(self, tracker, registry):
        prompt = registry.assemble() + " extra context about the build with exactly nine words"
        breakdown = tracker.get_token_breakdown(prompt)

        assert breakdown.sections == {"role": 4, "rules": 2}
        assert breakdown.provider_augmentation == 4
        assert breakdown.environment_context == 5
        assert breakdown.total == 15

    def test_total_equals_sections_plus_overhead(self, tracker):
        breakdown = tracker.get_token_breakdown("a b c d e f g h i j k l")
        assert breakdown.total == (
            sum(breakdown.sections.values()) + breakdown.provider_augmentation + breakdown.environment_context
        )

    def test_prompt_smaller_than_sections_has_no_overhead(self, tracker):
        breakdown = tracker.get_token_breakdown("short")
        assert breakdown.provider_augmentation == 0
        assert breakdown.environment_context == 0
        assert breakdown.total == 6

    def test_supplied_section_counts_are_trusted(self, tracker):
        breakdown = tracker.get_token_breakdown("a b c d e f g h i j", section_counts={"custom": 7})
        assert breakdown.sections == {"custom": 7}
        assert breakdown.provider_augmentation == 1
        assert breakdown.environment_context == 2
        assert breakdown.total == 10

    def test_to_dict_uses_camel_case(self, tracker):
        data = tracker.get_token_breakdown("a b c").to_dict()
        assert set(data) == {"sections", "providerAugmentation", "environmentContext", "total"}

    def test_module_level_breakdown_uses_default_sections(self):
        breakdown = get_token_breakdown(get_default_section_registry().assemble())
        assert set(breakdown.sections) == {"foundations", "investigation", "safety", "reference"}


class TestCheckBudget:
    def test_within_budget(self, tracker):
        budget = tracker.check_budget("one two three", "anthropic")
        assert budget.limit == PROVIDER_TOKEN_LIMITS["anthropic"]
        assert budget.used == 3
        assert budget.remaining == budget.limit - 3
        assert budget.over_budget is False

    def test_precomputed_count_over_budget(self):
        budget = check_budget("", "openai", token_count=200_000)
        assert budget.limit == 110_000
        assert budget.remaining == -90_000
        assert budget.over_budget is True

    def test_exactly_at_limit_is_not_over(self, tracker):
        budget = tracker.check_budget("", "openai", token_count=110_000)
        assert budget.remaining == 0
        assert budget.over_budget is False

    def test_unknown_provider_raises(self, tracker):
        with pytest.raises(UnknownProviderError) as exc_info:
            tracker.check_budget("hello", "mistral")
        assert exc_info.value.provider == "mistral"

    def test_limit_overrides(self):
        tracker = TokenBudgetTracker(limits={"openai": 10, "mistral": 5})
        assert tracker.get_limit("openai") == 10
        assert tracker.has_limit("mistral") is True
        assert tracker.get_limit("anthropic") == PROVIDER_TOKEN_LIMITS["anthropic"]
        assert tracker.check_budget("a b c d e f", "mistral").over_budget is True
