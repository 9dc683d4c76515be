"""Conversation compression: replace a long history with a structured summary.

Runs after observation masking. When the remaining conversation is still
above the threshold, the provider is asked to summarize it and the history is
replaced by a single context message built from that summary.
"""

import asyncio
import json
import logging
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from lifecycle_agent.core.errors import CompressionError
from lifecycle_agent.core.orchestration.masking import estimate_conversation_tokens
from lifecycle_agent.core.orchestration.messages import (
    ConversationMessage,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    user_text,
)
from lifecycle_agent.core.orchestration.protocols import LLMProvider
from lifecycle_agent.core.tokens import count_tokens

logger = logging.getLogger(__name__)

DEFAULT_COMPRESSION_THRESHOLD = 80_000
SUMMARIZER_SYSTEM_PROMPT = "You are a conversation summarizer."

_COMPRESSION_PROMPT = """Analyze this debugging conversation and create a structured summary.

Extract:
1. What issues have been identified
2. Which services have been investigated
3. What tools were used
4. Current task/focus
5. Key findings

Return only a JSON object with the keys "summary", "identifiedIssues" (objects
with "service", "issue" and "confidence" of high, medium or low),
"investigatedServices", "toolsUsed" and "currentTask".

Conversation:
{conversation}
"""


class _SummaryModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IdentifiedIssue(_SummaryModel):
    service: str
    issue: str
    confidence: Literal["high", "medium", "low"] = "medium"


class ConversationState(_SummaryModel):
    """Structured summary standing in for the compressed history."""

    summary: str
    identified_issues: List[IdentifiedIssue] = Field(default_factory=list)
    investigated_services: List[str] = Field(default_factory=list)
    tools_used: List[str] = Field(default_factory=list)
    current_task: str = ""
    token_count: int = 0
    message_count: int = 0
    compression_level: int = 1


def format_transcript(messages: Sequence[ConversationMessage]) -> str:
    """Render messages as plain text for the summarizer."""
    blocks = []
    for message in messages:
        lines = []
        for part in message.parts:
            if isinstance(part, TextPart):
                lines.append(part.text)
            elif isinstance(part, ToolCallPart):
                lines.append(f"[called {part.tool_name} {json.dumps(part.args, sort_keys=True, default=str)}]")
            elif isinstance(part, ToolResultPart):
                lines.append(f"[{part.tool_name} result] {part.result.to_agent_text()}")
        blocks.append(f"{message.role}: " + "\n".join(lines))
    return "\n\n".join(blocks)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


class ConversationManager:
    """Decides when a conversation needs compressing and performs it.

    Args:
        threshold: Conversation tokens above which compression kicks in
    """

    def __init__(self, threshold: int = DEFAULT_COMPRESSION_THRESHOLD):
        self.threshold = threshold

    def should_compress(self, messages: Sequence[ConversationMessage]) -> bool:
        return estimate_conversation_tokens(messages) > self.threshold

    async def compress(
        self,
        messages: Sequence[ConversationMessage],
        provider: LLMProvider,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ConversationState:
        """Ask ``provider`` for a structured summary of ``messages``.

        Raises:
            CompressionError: The reply was not a usable summary
        """
        logger.info("Compressing conversation of %d messages with %s", len(messages), provider.name)
        prompt = _COMPRESSION_PROMPT.format(conversation=format_transcript(messages))

        reply = ""
        async for chunk in provider.stream(
            [user_text(prompt)],
            system_prompt=SUMMARIZER_SYSTEM_PROMPT,
            tools=[],
            cancel_event=cancel_event or asyncio.Event(),
        ):
            if chunk.type == "text" and chunk.content:
                reply += chunk.content

        try:
            state = ConversationState.model_validate_json(_strip_code_fence(reply))
        except ValidationError as exc:
            raise CompressionError(f"Summary from {provider.name} is not valid conversation state: {exc}") from exc

        state.token_count = count_tokens(state.model_dump_json(by_alias=True))
        state.message_count = len(messages)
        logger.info(
            "Conversation compressed messages=%d tokens=%d issues=%d services=%d",
            state.message_count,
            state.token_count,
            len(state.identified_issues),
            len(state.investigated_services),
        )
        return state

    def build_prompt_from_state(self, state: ConversationState) -> str:
        issues = "\n".join(
            f"- **{issue.service}**: {issue.issue} ({issue.confidence} confidence)" for issue in state.identified_issues
        )
        return (
            "# Conversation Context (Compressed)\n\n"
            f"## Summary\n{state.summary}\n\n"
            f"## Identified Issues\n{issues or '- none yet'}\n\n"
            "## Already Investigated\n"
            f"Services: {', '.join(state.investigated_services) or 'none'}\n"
            f"Tools used: {', '.join(state.tools_used) or 'none'}\n\n"
            f"## Current Task\n{state.current_task}\n\n"
            "Continue the investigation from this point."
        )

    async def compact(
        self,
        messages: Sequence[ConversationMessage],
        provider: LLMProvider,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[ConversationMessage]:
        """Replace everything before the latest message with the compressed context."""
        state = await self.compress(messages[:-1], provider, cancel_event=cancel_event)
        return [user_text(self.build_prompt_from_state(state)), messages[-1]]
