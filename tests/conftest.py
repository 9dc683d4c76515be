"""Shared fixtures for the lifecycle-agent test suite."""

from typing import List

import pytest

from lifecycle_agent.config import set_config
from lifecycle_agent.core.resilience import reset_breaker_registry_for_testing
from lifecycle_agent.core.tokens import estimation


class WordEncoding:
    """Stand-in for a tiktoken encoding: one token per whitespace-separated word."""

    def encode(self, text: str, disallowed_special=()) -> List[str]:
        return text.split()


@pytest.fixture(autouse=True)
def word_token_counts(monkeypatch):
    """Make token counts deterministic and independent of tiktoken's encoder files."""
    monkeypatch.setattr(estimation, "_get_encoding", lambda: WordEncoding())


@pytest.fixture(autouse=True)
def fresh_global_state():
    """Isolate the process-default breaker registry and config between tests."""
    reset_breaker_registry_for_testing()
    set_config(None)
    yield
    reset_breaker_registry_for_testing()
    set_config(None)
