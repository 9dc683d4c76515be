"""Typed events produced by an agent run.

Every event serializes to the camelCase wire shape consumed by the SSE
transport via :meth:`AgentEvent.to_wire`.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lifecycle_agent.core.resilience import (
    ClassifiedError,
    ErrorCategory,
    SuggestedAction,
    breaker_open_message,
    build_user_message,
    suggest_action,
)

PROTECTIVE_STOP_PREFIX = "Protective stop:"
STREAM_INTERRUPTED_PREFIX = "Stream interrupted:"


class AgentEvent(BaseModel):
    """Base for all run events."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )

    type: str

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_wire())}\n\n"

    @property
    def is_terminal(self) -> bool:
        return self.type in ("error", "complete", "complete_json")


class ChunkEvent(AgentEvent):
    type: Literal["chunk"] = "chunk"
    content: str


class ThinkingEvent(AgentEvent):
    type: Literal["thinking"] = "thinking"
    message: str


class ToolCallEvent(AgentEvent):
    type: Literal["tool_call"] = "tool_call"
    message: str
    tool_call_id: str


class ProcessingDetails(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )

    tool_duration_ms: float = Field(..., description="Wall time of this tool call")
    total_duration_ms: float = Field(..., description="Wall time since the run started")


class ProcessingEvent(AgentEvent):
    type: Literal["processing"] = "processing"
    message: str
    tool_call_id: str
    details: ProcessingDetails
    result_preview: Optional[str] = None


class EvidenceFileEvent(AgentEvent):
    type: Literal["evidence_file"] = "evidence_file"
    tool_call_id: str
    file_path: str
    repository: Optional[str] = None
    branch: Optional[str] = None
    language: Optional[str] = None


class EvidenceCommitEvent(AgentEvent):
    type: Literal["evidence_commit"] = "evidence_commit"
    tool_call_id: str
    commit_url: Optional[str] = None
    commit_sha: Optional[str] = None
    commit_message: Optional[str] = None
    file_paths: List[str] = Field(default_factory=list)


class EvidenceResourceEvent(AgentEvent):
    type: Literal["evidence_resource"] = "evidence_resource"
    tool_call_id: str
    resource_type: str
    resource_name: str
    namespace: Optional[str] = None


class ErrorEvent(AgentEvent):
    """Terminal failure, either a provider failure or a protective stop."""

    type: Literal["error"] = "error"
    error: Literal[True] = True
    user_message: str
    category: ErrorCategory
    suggested_action: Optional[SuggestedAction] = None
    retry_after: Optional[float] = None
    model_name: Optional[str] = None
    code: str
    protective: bool = False
    hint: Optional[str] = None


class CompleteEvent(AgentEvent):
    """Terminal success.

    ``interrupted`` marks a provider stream that failed after text was
    already delivered; the partial answer stands and ``user_message`` says
    why it ends early.
    """

    type: Literal["complete"] = "complete"
    total_investigation_time_ms: float
    interrupted: bool = False
    user_message: Optional[str] = None
    category: Optional[ErrorCategory] = None
    model_name: Optional[str] = None


class CompleteJsonEvent(AgentEvent):
    type: Literal["complete_json"] = "complete_json"
    content: Dict[str, Any]
    total_investigation_time_ms: float


class DebugContextEvent(AgentEvent):
    type: Literal["debug_context"] = "debug_context"
    system_prompt: str
    provider: str
    model_id: str
    masking_stats: Optional[Dict[str, Any]] = None


class DebugToolCallEvent(AgentEvent):
    type: Literal["debug_tool_call"] = "debug_tool_call"
    message: str
    tool_call_id: str
    tool_name: str
    tool_args: Dict[str, Any] = Field(default_factory=dict)


class DebugToolResultEvent(AgentEvent):
    type: Literal["debug_tool_result"] = "debug_tool_result"
    message: str
    tool_call_id: str
    tool_name: str
    tool_result: Dict[str, Any]
    details: ProcessingDetails
    result_preview: Optional[str] = None


class DebugMetricsEvent(AgentEvent):
    type: Literal["debug_metrics"] = "debug_metrics"
    iterations: int
    total_tool_calls: int
    total_duration_ms: float
    total_investigation_time_ms: float
    input_tokens: int = 0
    output_tokens: int = 0


def provider_error_event(classified: ClassifiedError, model_name: str) -> ErrorEvent:
    """Terminal event for a provider call that failed after the retry policy."""
    return ErrorEvent(
        user_message=build_user_message(classified, model_name),
        category=classified.category,
        suggested_action=suggest_action(classified),
        retry_after=classified.retry_after_seconds,
        model_name=model_name,
        code="LLM_API_ERROR",
    )


def breaker_open_event(model_name: str, retry_after: Optional[float] = None) -> ErrorEvent:
    return ErrorEvent(
        user_message=breaker_open_message(model_name, retry_after),
        category=ErrorCategory.TRANSIENT,
        suggested_action=SuggestedAction.SWITCH_MODEL,
        retry_after=retry_after,
        model_name=model_name,
        code="CIRCUIT_BREAKER_OPEN",
    )


def protective_stop_event(
    code: str,
    message: str,
    *,
    hint: Optional[str] = None,
    model_name: Optional[str] = None,
    suggested_action: Optional[SuggestedAction] = None,
) -> ErrorEvent:
    """Terminal event for a stop the engine chose, not one the provider caused."""
    text = f"{PROTECTIVE_STOP_PREFIX} {message}"
    if hint:
        text = f"{text} {hint}"
    return ErrorEvent(
        user_message=text,
        category=ErrorCategory.DETERMINISTIC,
        suggested_action=suggested_action,
        model_name=model_name,
        code=code,
        protective=True,
        hint=hint,
    )


def interrupted_complete_event(
    classified: ClassifiedError,
    model_name: str,
    total_investigation_time_ms: float,
) -> CompleteEvent:
    """Terminal event for a stream that failed after part of the answer arrived."""
    return CompleteEvent(
        total_investigation_time_ms=total_investigation_time_ms,
        interrupted=True,
        user_message=f"{STREAM_INTERRUPTED_PREFIX} {build_user_message(classified, model_name)}",
        category=classified.category,
        model_name=model_name,
    )


async def relay_events(
    task: "asyncio.Future[Any]",
    queue: "asyncio.Queue[AgentEvent]",
) -> AsyncIterator[AgentEvent]:
    """Yield what ``task`` puts on ``queue`` until it finishes, then surface its failure.

    Closing the iterator early cancels both ``task`` and the pending read.
    """
    getter: Optional["asyncio.Future[AgentEvent]"] = None
    try:
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({task, getter}, return_when=asyncio.FIRST_COMPLETED)
            if getter in done:
                yield getter.result()
                continue
            getter.cancel()
            break
        while not queue.empty():
            yield queue.get_nowait()
        task.result()
    finally:
        if getter is not None and not getter.done():
            getter.cancel()
        if not task.done():
            task.cancel()


def parse_structured_response(text: str) -> Optional[Dict[str, Any]]:
    """Return the JSON investigation payload if ``text`` is one, else None."""
    stripped = text.strip()
    if not stripped.startswith("{") or '"type"' not in stripped:
        return None
    try:
        payload = json.loads(stripped)
    except ValueError:
        return None
    if isinstance(payload, dict) and "type" in payload:
        return payload
    return None
