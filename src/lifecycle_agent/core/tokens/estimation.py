"""Deterministic, provider-agnostic token counting.

Every provider is estimated with the same tiktoken encoding so budget checks
are comparable across providers and stable across runs.
"""

import logging
from functools import lru_cache
from typing import Any, Optional

import tiktoken

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=4)
def _get_cached_encoding(name: str) -> Any:
    """Get a cached tiktoken encoding; loading one reads encoder data from disk."""
    return tiktoken.get_encoding(name)


def _get_encoding() -> Any:
    return _get_cached_encoding(DEFAULT_ENCODING)


def count_tokens(text: Optional[str]) -> int:
    """Count tokens in ``text``.

    Returns:
        Non-negative token count; 0 for empty or None input.
    """
    if not text:
        return 0
    # Special-token text in tool output is counted as plain text.
    return len(_get_encoding().encode(text, disallowed_special=()))
