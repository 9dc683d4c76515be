"""Collaborator interfaces consumed by the orchestration loop.

The engine depends on these shapes only; concrete provider clients and
transcript stores live outside this package.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Protocol, Sequence, runtime_checkable

from ulid import ULID

from lifecycle_agent.core.orchestration.messages import ConversationMessage


def generate_tool_call_id() -> str:
    return f"call_{ULID()}"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=generate_tool_call_id)


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    def add(self, other: Optional["TokenUsage"]) -> None:
        if other is not None:
            self.input_tokens += other.input_tokens
            self.output_tokens += other.output_tokens


@dataclass(frozen=True)
class StreamChunk:
    """One increment of a streamed provider response."""

    type: Literal["text", "thinking", "tool_calls"]
    content: str = ""
    tool_calls: Sequence[ToolCall] = ()
    usage: Optional[TokenUsage] = None


@runtime_checkable
class LLMProvider(Protocol):
    """Streaming chat client for one vendor/model.

    Implementations raise vendor errors (or ``LLMError`` subclasses) on
    failure; the retry policy classifies them.
    """

    name: str
    model_id: str

    def stream(
        self,
        messages: Sequence[ConversationMessage],
        *,
        system_prompt: str,
        tools: Sequence[Dict[str, Any]],
        cancel_event: asyncio.Event,
    ) -> AsyncIterator[StreamChunk]: ...


@dataclass
class StoredMessage:
    role: Literal["user", "assistant"]
    content: str
    timestamp: float = field(default_factory=time.time)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ConversationSession:
    build_uuid: str
    messages: List[StoredMessage] = field(default_factory=list)
    last_activity: float = field(default_factory=time.time)


class ConversationStore(Protocol):
    """Transcript persistence keyed by conversation (build) id."""

    async def append_message(self, conversation_id: str, message: StoredMessage) -> None: ...

    async def read_tail(self, conversation_id: str, limit: int) -> List[StoredMessage]: ...


class InMemoryConversationStore:
    """Process-local store, suitable for tests and single-instance deployments."""

    def __init__(self) -> None:
        self._sessions: Dict[str, ConversationSession] = {}
        self._lock = asyncio.Lock()

    async def append_message(self, conversation_id: str, message: StoredMessage) -> None:
        async with self._lock:
            session = self._sessions.setdefault(conversation_id, ConversationSession(build_uuid=conversation_id))
            session.messages.append(message)
            session.last_activity = time.time()

    async def read_tail(self, conversation_id: str, limit: int) -> List[StoredMessage]:
        async with self._lock:
            session = self._sessions.get(conversation_id)
            if session is None or limit <= 0:
                return []
            return list(session.messages[-limit:])

    async def get_session(self, conversation_id: str) -> Optional[ConversationSession]:
        async with self._lock:
            return self._sessions.get(conversation_id)

    async def clear(self, conversation_id: str) -> None:
        async with self._lock:
            self._sessions.pop(conversation_id, None)
