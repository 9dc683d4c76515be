"""Agent orchestration: tools, loop protection, the event stream, and the run loop.

Usage:
    from lifecycle_agent.core.orchestration import AgentService, ToolOrchestrator, ToolRegistry

    orchestrator = ToolOrchestrator(ToolRegistry([get_pod_logs_tool]))
    run = orchestrator.start(provider, system_prompt, messages)
    async for event in run:
        send(event.to_sse())
"""

from lifecycle_agent.core.orchestration.compression import (
    ConversationManager,
    ConversationState,
    IdentifiedIssue,
    format_transcript,
)
from lifecycle_agent.core.orchestration.events import (
    AgentEvent,
    ChunkEvent,
    CompleteEvent,
    CompleteJsonEvent,
    DebugContextEvent,
    DebugMetricsEvent,
    DebugToolCallEvent,
    DebugToolResultEvent,
    ErrorEvent,
    EvidenceCommitEvent,
    EvidenceFileEvent,
    EvidenceResourceEvent,
    ProcessingDetails,
    ProcessingEvent,
    ThinkingEvent,
    ToolCallEvent,
    interrupted_complete_event,
    parse_structured_response,
    relay_events,
)
from lifecycle_agent.core.orchestration.loop_detector import (
    REPEAT_WINDOW,
    LoopDetector,
    LoopProtectionConfig,
    LoopViolation,
    LoopViolationReason,
    ToolCallRecord,
    args_fingerprint,
)
from lifecycle_agent.core.orchestration.masking import (
    MaskingResult,
    MaskingStats,
    estimate_conversation_tokens,
    mask_observations,
)
from lifecycle_agent.core.orchestration.messages import (
    ConversationMessage,
    TextPart,
    ToolCallPart,
    ToolResultPart,
    assistant_text,
    text_content,
    user_text,
)
from lifecycle_agent.core.orchestration.orchestrator import (
    AgentRun,
    OrchestrationResult,
    StopReason,
    ToolOrchestrator,
)
from lifecycle_agent.core.orchestration.output_limiter import (
    OutputLimiter,
    truncate_log_output,
    truncate_output,
)
from lifecycle_agent.core.orchestration.protocols import (
    ConversationSession,
    ConversationStore,
    InMemoryConversationStore,
    LLMProvider,
    StoredMessage,
    StreamChunk,
    TokenUsage,
    ToolCall,
)
from lifecycle_agent.core.orchestration.safety import (
    ConfirmationRequest,
    ConfirmFunc,
    ToolSafetyManager,
)
from lifecycle_agent.core.orchestration.service import AgentService
from lifecycle_agent.core.orchestration.tools import (
    Tool,
    ToolCategory,
    ToolError,
    ToolRegistry,
    ToolResult,
    ToolSafetyLevel,
)

__all__ = [
    # Events
    "AgentEvent",
    "ChunkEvent",
    "ThinkingEvent",
    "ToolCallEvent",
    "ProcessingEvent",
    "ProcessingDetails",
    "EvidenceFileEvent",
    "EvidenceCommitEvent",
    "EvidenceResourceEvent",
    "ErrorEvent",
    "CompleteEvent",
    "CompleteJsonEvent",
    "DebugContextEvent",
    "DebugToolCallEvent",
    "DebugToolResultEvent",
    "DebugMetricsEvent",
    "interrupted_complete_event",
    "parse_structured_response",
    "relay_events",
    # Loop protection
    "LoopDetector",
    "LoopProtectionConfig",
    "LoopViolation",
    "LoopViolationReason",
    "ToolCallRecord",
    "REPEAT_WINDOW",
    "args_fingerprint",
    # Masking
    "mask_observations",
    "estimate_conversation_tokens",
    "MaskingResult",
    "MaskingStats",
    # Compression
    "ConversationManager",
    "ConversationState",
    "IdentifiedIssue",
    "format_transcript",
    # Messages
    "ConversationMessage",
    "TextPart",
    "ToolCallPart",
    "ToolResultPart",
    "user_text",
    "assistant_text",
    "text_content",
    # Tools
    "Tool",
    "ToolCategory",
    "ToolError",
    "ToolRegistry",
    "ToolResult",
    "ToolSafetyLevel",
    "ToolSafetyManager",
    "ConfirmationRequest",
    "ConfirmFunc",
    "OutputLimiter",
    "truncate_output",
    "truncate_log_output",
    # Protocols
    "LLMProvider",
    "StreamChunk",
    "ToolCall",
    "TokenUsage",
    "ConversationStore",
    "ConversationSession",
    "StoredMessage",
    "InMemoryConversationStore",
    # Loop
    "ToolOrchestrator",
    "AgentRun",
    "OrchestrationResult",
    "StopReason",
    "AgentService",
]
