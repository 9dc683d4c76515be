"""Conversation message model shared by providers, masking, and the loop."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Union

from lifecycle_agent.core.orchestration.tools import ToolResult

Role = Literal["user", "assistant"]


@dataclass
class TextPart:
    text: str
    type: Literal["text"] = "text"


@dataclass
class ToolCallPart:
    tool_call_id: str
    tool_name: str
    args: Dict[str, Any] = field(default_factory=dict)
    type: Literal["tool_call"] = "tool_call"


@dataclass
class ToolResultPart:
    tool_call_id: str
    tool_name: str
    result: ToolResult
    type: Literal["tool_result"] = "tool_result"


MessagePart = Union[TextPart, ToolCallPart, ToolResultPart]


@dataclass
class ConversationMessage:
    role: Role
    parts: List[MessagePart] = field(default_factory=list)

    @property
    def tool_results(self) -> List[ToolResultPart]:
        return [part for part in self.parts if isinstance(part, ToolResultPart)]

    @property
    def tool_calls(self) -> List[ToolCallPart]:
        return [part for part in self.parts if isinstance(part, ToolCallPart)]


def user_text(text: str) -> ConversationMessage:
    return ConversationMessage(role="user", parts=[TextPart(text=text)])


def assistant_text(text: str) -> ConversationMessage:
    return ConversationMessage(role="assistant", parts=[TextPart(text=text)])


def text_content(message: ConversationMessage) -> str:
    """Concatenate the text parts of a message."""
    return "".join(part.text for part in message.parts if isinstance(part, TextPart))
