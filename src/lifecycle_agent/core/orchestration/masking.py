"""Observation masking: drop stale tool output once a conversation grows large.

Older successful tool results are replaced by a short placeholder; the
model can re-call the tool if it needs the data again. Failed results and
the most recent ``recency_window`` tool turns are always kept.
"""

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Sequence

from lifecycle_agent.core.orchestration.messages import (
    ConversationMessage,
    MessagePart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from lifecycle_agent.core.tokens import count_tokens

logger = logging.getLogger(__name__)

DEFAULT_RECENCY_WINDOW = 3
DEFAULT_TOKEN_THRESHOLD = 25_000


@dataclass(frozen=True)
class MaskingStats:
    tokens_before: int
    tokens_after: int
    masked_parts: int

    @property
    def tokens_saved(self) -> int:
        return self.tokens_before - self.tokens_after

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalTokensBefore": self.tokens_before,
            "totalTokensAfter": self.tokens_after,
            "maskedParts": self.masked_parts,
            "savedTokens": self.tokens_saved,
        }


@dataclass(frozen=True)
class MaskingResult:
    messages: List[ConversationMessage]
    masked: bool
    stats: MaskingStats


def estimate_part_tokens(part: MessagePart) -> int:
    if isinstance(part, TextPart):
        return count_tokens(part.text)
    if isinstance(part, ToolCallPart):
        return count_tokens(json.dumps(part.args, sort_keys=True, default=str)) + count_tokens(part.tool_name)
    return count_tokens(part.result.to_agent_text())


def estimate_conversation_tokens(messages: Sequence[ConversationMessage]) -> int:
    return sum(estimate_part_tokens(part) for message in messages for part in message.parts)


def _placeholder(part: ToolResultPart) -> str:
    return f"[{part.tool_name} output omitted; re-call tool if needed]"


def _protected_boundary(messages: Sequence[ConversationMessage], window: int) -> int:
    # Index of the oldest message inside the recency window of tool-result turns.
    seen = 0
    for index in range(len(messages) - 1, -1, -1):
        if messages[index].tool_results:
            seen += 1
            if seen >= window:
                return index
    return 0


def mask_observations(
    messages: Sequence[ConversationMessage],
    recency_window: int = DEFAULT_RECENCY_WINDOW,
    token_threshold: int = DEFAULT_TOKEN_THRESHOLD,
) -> MaskingResult:
    """Mask stale tool output when the conversation reaches ``token_threshold``.

    Input messages are never mutated.
    """
    tokens_before = estimate_conversation_tokens(messages)
    if tokens_before < token_threshold:
        return MaskingResult(
            messages=list(messages),
            masked=False,
            stats=MaskingStats(tokens_before=tokens_before, tokens_after=tokens_before, masked_parts=0),
        )

    boundary = _protected_boundary(messages, recency_window)
    masked_parts = 0
    new_messages: List[ConversationMessage] = []
    for index, message in enumerate(messages):
        if index >= boundary or not message.tool_results:
            new_messages.append(message)
            continue
        parts: List[MessagePart] = []
        for part in message.parts:
            if isinstance(part, ToolResultPart) and part.result.success:
                placeholder = _placeholder(part)
                if part.result.agent_content != placeholder:
                    masked_parts += 1
                part = replace(part, result=replace(part.result, agent_content=placeholder, display_content=None))
            parts.append(part)
        new_messages.append(ConversationMessage(role=message.role, parts=parts))

    tokens_after = estimate_conversation_tokens(new_messages)
    if masked_parts:
        logger.info(
            "Masked %d stale tool results (%d -> %d tokens)",
            masked_parts,
            tokens_before,
            tokens_after,
        )
    return MaskingResult(
        messages=new_messages,
        masked=True,
        stats=MaskingStats(tokens_before=tokens_before, tokens_after=tokens_after, masked_parts=masked_parts),
    )
