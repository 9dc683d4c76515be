"""The agent's iterate-call-tools loop.

One run alternates between a single streamed provider call and the
concurrent execution of the tool calls it returned, until the model stops
asking for tools or a protective ceiling, a budget violation, or a terminal
provider failure ends it. Everything a consumer needs to see is produced as
a typed event on :class:`AgentRun`.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from lifecycle_agent.core.errors import (
    BudgetExceededError,
    CircuitBreakerError,
    LoopExceededError,
    ProviderCallError,
    RunCancelledError,
)
from lifecycle_agent.core.observability import audit_log
from lifecycle_agent.core.orchestration.events import (
    AgentEvent,
    ChunkEvent,
    CompleteEvent,
    CompleteJsonEvent,
    DebugMetricsEvent,
    DebugToolCallEvent,
    DebugToolResultEvent,
    ProcessingDetails,
    ProcessingEvent,
    ThinkingEvent,
    ToolCallEvent,
    breaker_open_event,
    interrupted_complete_event,
    parse_structured_response,
    protective_stop_event,
    provider_error_event,
    relay_events,
)
from lifecycle_agent.core.orchestration.evidence import extract_evidence, generate_result_preview
from lifecycle_agent.core.orchestration.loop_detector import (
    LoopDetector,
    LoopProtectionConfig,
    LoopViolation,
    LoopViolationReason,
)
from lifecycle_agent.core.orchestration.masking import estimate_conversation_tokens
from lifecycle_agent.core.orchestration.messages import (
    ConversationMessage,
    MessagePart,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from lifecycle_agent.core.orchestration.protocols import LLMProvider, TokenUsage, ToolCall
from lifecycle_agent.core.orchestration.safety import ConfirmFunc, ToolSafetyManager
from lifecycle_agent.core.orchestration.tools import ToolRegistry, ToolResult
from lifecycle_agent.core.resilience import (
    DEFAULT_MAX_RETRIES,
    ClassifiedError,
    RetryBudget,
    RetryPolicy,
    SuggestedAction,
)
from lifecycle_agent.core.tokens import TokenBudget, TokenBudgetTracker, count_tokens

logger = logging.getLogger(__name__)

_VIOLATION_CODES = {
    LoopViolationReason.ITERATION_LIMIT: "ITERATION_LIMIT",
    LoopViolationReason.TOOL_CALL_LIMIT: "TOOL_CALL_LIMIT",
    LoopViolationReason.REPEATED_CALL: "LOOP_DETECTED",
}


class StopReason(str, Enum):
    COMPLETED = "completed"
    LOOP_EXCEEDED = "loop_exceeded"
    BUDGET_EXCEEDED = "budget_exceeded"
    PROVIDER_ERROR = "provider_error"
    INTERRUPTED = "interrupted"
    CIRCUIT_OPEN = "circuit_open"
    CANCELLED = "cancelled"


@dataclass
class OrchestrationResult:
    """Outcome of a finished run, available on :attr:`AgentRun.result`."""

    success: bool
    stop_reason: StopReason
    response: str
    iterations: int
    total_tool_calls: int
    duration_ms: float
    usage: TokenUsage
    messages: List[ConversationMessage] = field(default_factory=list)
    structured: Optional[Dict[str, Any]] = None
    classified_error: Optional[ClassifiedError] = None
    violation: Optional[LoopViolation] = None
    budget: Optional[TokenBudget] = None


@dataclass
class _RunState:
    messages: List[ConversationMessage]
    started: float = field(default_factory=time.perf_counter)
    iterations: int = 0
    total_tool_calls: int = 0
    response: str = ""
    usage: TokenUsage = field(default_factory=TokenUsage)

    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.started) * 1000, 1)


@dataclass
class _ProviderResponse:
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)

    def reset(self) -> None:
        self.text = ""
        self.tool_calls = []
        self.usage = TokenUsage()


class AgentRun:
    """Lazy, finite, single-use stream of events for one run.

    Iterate it once with ``async for``; afterwards :attr:`result` holds the
    :class:`OrchestrationResult`.
    """

    def __init__(self) -> None:
        self._events: Optional[AsyncIterator[AgentEvent]] = None
        self._consumed = False
        self.result: Optional[OrchestrationResult] = None

    def __aiter__(self) -> AsyncIterator[AgentEvent]:
        if self._consumed or self._events is None:
            raise RuntimeError("AgentRun can only be iterated once")
        self._consumed = True
        return self._events

    async def collect(self) -> List[AgentEvent]:
        """Drain the run and return every event."""
        return [event async for event in self]


class ToolOrchestrator:
    """Drives provider calls and tool executions for agent runs.

    Args:
        tools: Tools the model may call
        loop_config: Iteration, tool-call and repeat ceilings
        retry_policy: Wraps each provider call; shares the breaker registry
        token_tracker: Per-provider context limits
        safety_manager: Validation/confirmation/timeout layer for tools
        max_retries: Size of the per-run retry budget
        debug: Also emit ``debug_*`` events
    """

    def __init__(
        self,
        tools: ToolRegistry,
        *,
        loop_config: Optional[LoopProtectionConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        token_tracker: Optional[TokenBudgetTracker] = None,
        safety_manager: Optional[ToolSafetyManager] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        debug: bool = False,
    ):
        self.tools = tools
        self.loop_config = loop_config or LoopProtectionConfig()
        self.retry_policy = retry_policy or RetryPolicy()
        self.token_tracker = token_tracker or TokenBudgetTracker()
        self.safety_manager = safety_manager or ToolSafetyManager()
        self.max_retries = max_retries
        self.debug = debug

    def start(
        self,
        provider: LLMProvider,
        system_prompt: str,
        messages: Sequence[ConversationMessage],
        *,
        retry_budget: Optional[RetryBudget] = None,
        cancel_event: Optional[asyncio.Event] = None,
        confirm: Optional[ConfirmFunc] = None,
    ) -> AgentRun:
        """Prepare a run; nothing happens until the returned run is iterated."""
        run = AgentRun()
        run._events = self._run(
            run,
            provider,
            system_prompt,
            list(messages),
            retry_budget or RetryBudget(self.max_retries),
            cancel_event or asyncio.Event(),
            confirm,
        )
        return run

    async def _run(
        self,
        run: AgentRun,
        provider: LLMProvider,
        system_prompt: str,
        messages: List[ConversationMessage],
        retry_budget: RetryBudget,
        cancel_event: asyncio.Event,
        confirm: Optional[ConfirmFunc],
    ) -> AsyncIterator[AgentEvent]:
        state = _RunState(messages=messages)
        detector = LoopDetector(self.loop_config)
        model_name = provider.model_id
        terminal: Optional[AgentEvent] = None
        result_kwargs: Dict[str, Any] = {}

        logger.info("Agent run started provider=%s model=%s", provider.name, model_name)
        audit_log("run_started", provider=provider.name, model=model_name)

        try:
            async for event in self._iterate(
                provider, system_prompt, state, detector, retry_budget, cancel_event, confirm
            ):
                yield event
        except LoopExceededError as exc:
            violation = exc.violation
            terminal = protective_stop_event(
                _VIOLATION_CODES[violation.reason],
                violation.message,
                hint=violation.hint,
                model_name=model_name,
            )
            result_kwargs = {"stop_reason": StopReason.LOOP_EXCEEDED, "violation": violation}
        except BudgetExceededError as exc:
            budget = exc.budget
            terminal = protective_stop_event(
                "TOKEN_BUDGET_EXCEEDED",
                f"the conversation needs {budget.used} tokens but {model_name} allows {budget.limit}.",
                hint="Start a new conversation or use a model with a larger context window.",
                model_name=model_name,
                suggested_action=SuggestedAction.SWITCH_MODEL,
            )
            audit_log("budget_exceeded", provider=budget.provider, used=budget.used, limit=budget.limit)
            result_kwargs = {"stop_reason": StopReason.BUDGET_EXCEEDED, "budget": budget}
        except CircuitBreakerError as exc:
            terminal = breaker_open_event(model_name, exc.retry_after)
            result_kwargs = {"stop_reason": StopReason.CIRCUIT_OPEN}
        except ProviderCallError as exc:
            if state.response:
                logger.warning(
                    "Provider stream failed after %d chars of text; keeping the partial response: %s",
                    len(state.response),
                    exc,
                )
                terminal = interrupted_complete_event(exc.classified, model_name, state.elapsed_ms())
                result_kwargs = {"stop_reason": StopReason.INTERRUPTED, "classified_error": exc.classified}
            else:
                terminal = provider_error_event(exc.classified, model_name)
                result_kwargs = {"stop_reason": StopReason.PROVIDER_ERROR, "classified_error": exc.classified}
        except RunCancelledError:
            logger.info("Agent run cancelled after %d iterations", state.iterations)
            result_kwargs = {"stop_reason": StopReason.CANCELLED}
        else:
            structured = parse_structured_response(state.response)
            if structured is not None:
                terminal = CompleteJsonEvent(content=structured, total_investigation_time_ms=state.elapsed_ms())
            else:
                terminal = CompleteEvent(total_investigation_time_ms=state.elapsed_ms())
            result_kwargs = {"stop_reason": StopReason.COMPLETED, "structured": structured}

        duration_ms = state.elapsed_ms()
        stop_reason = result_kwargs.pop("stop_reason")
        success = stop_reason in (StopReason.COMPLETED, StopReason.INTERRUPTED)
        run.result = OrchestrationResult(
            success=success,
            stop_reason=stop_reason,
            response=state.response,
            iterations=state.iterations,
            total_tool_calls=state.total_tool_calls,
            duration_ms=duration_ms,
            usage=state.usage,
            messages=state.messages,
            **result_kwargs,
        )

        audit_log(
            "run_completed" if success else "run_aborted",
            provider=provider.name,
            stop_reason=stop_reason.value,
            iterations=state.iterations,
            tool_calls=state.total_tool_calls,
            duration_ms=duration_ms,
        )
        logger.info(
            "Agent run finished reason=%s iterations=%d tool_calls=%d duration_ms=%.1f",
            stop_reason.value,
            state.iterations,
            state.total_tool_calls,
            duration_ms,
        )

        if self.debug and stop_reason != StopReason.CANCELLED:
            yield DebugMetricsEvent(
                iterations=state.iterations,
                total_tool_calls=state.total_tool_calls,
                total_duration_ms=duration_ms,
                total_investigation_time_ms=duration_ms,
                input_tokens=state.usage.input_tokens,
                output_tokens=state.usage.output_tokens,
            )
        if terminal is not None:
            yield terminal

    async def _iterate(
        self,
        provider: LLMProvider,
        system_prompt: str,
        state: _RunState,
        detector: LoopDetector,
        retry_budget: RetryBudget,
        cancel_event: asyncio.Event,
        confirm: Optional[ConfirmFunc],
    ) -> AsyncIterator[AgentEvent]:
        iteration = 0
        while True:
            iteration += 1
            violation = detector.check_iteration(iteration)
            if violation is not None:
                raise LoopExceededError(violation)
            if cancel_event.is_set():
                raise RunCancelledError("Run cancelled")
            state.iterations = iteration

            self._check_budget(provider, system_prompt, state.messages)

            response = _ProviderResponse()
            try:
                async for event in self._call_provider(
                    provider, system_prompt, state, response, retry_budget, cancel_event
                ):
                    yield event
            except ProviderCallError:
                state.response = response.text
                raise
            state.usage.add(response.usage)

            # Providers may honour cancellation by ending the stream early.
            if cancel_event.is_set():
                raise RunCancelledError("Run cancelled during provider call")

            if not response.tool_calls:
                state.response = response.text
                return

            state.total_tool_calls += len(response.tool_calls)
            violation = detector.check_tool_calls(state.total_tool_calls)
            if violation is not None:
                state.response = response.text
                raise LoopExceededError(violation)

            for call in response.tool_calls:
                violation = detector.check_tool_call(call.name, call.arguments, iteration)
                if violation is not None:
                    logger.warning("Loop detected for %s at iteration %d", call.name, iteration)
                    state.response = response.text
                    raise LoopExceededError(violation)
                detector.record_call(call.name, call.arguments, iteration)

            for call in response.tool_calls:
                yield ToolCallEvent(message=f"Calling {call.name}", tool_call_id=call.id)
                if self.debug:
                    yield DebugToolCallEvent(
                        message=f"Calling {call.name}",
                        tool_call_id=call.id,
                        tool_name=call.name,
                        tool_args=dict(call.arguments),
                    )

            outcomes = await asyncio.gather(
                *(self._execute_tool(call, cancel_event, confirm) for call in response.tool_calls),
                return_exceptions=True,
            )

            result_parts: List[MessagePart] = []
            for call, outcome in zip(response.tool_calls, outcomes):
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, asyncio.CancelledError):
                        raise outcome
                    logger.error("Tool %s raised unexpectedly: %s", call.name, outcome)
                    result = ToolResult.fail(str(outcome) or type(outcome).__name__, "EXECUTION_ERROR", recoverable=True)
                    tool_ms = 0.0
                else:
                    result, tool_ms = outcome

                for event in self._result_events(call, result, tool_ms, state.elapsed_ms()):
                    yield event
                result_parts.append(ToolResultPart(tool_call_id=call.id, tool_name=call.name, result=result))

            assistant_parts: List[MessagePart] = [TextPart(text=response.text)] if response.text else []
            assistant_parts.extend(
                ToolCallPart(tool_call_id=call.id, tool_name=call.name, args=dict(call.arguments))
                for call in response.tool_calls
            )
            state.messages.append(ConversationMessage(role="assistant", parts=assistant_parts))
            state.messages.append(ConversationMessage(role="user", parts=result_parts))

            if cancel_event.is_set():
                raise RunCancelledError("Run cancelled during tool execution")

    def _check_budget(
        self,
        provider: LLMProvider,
        system_prompt: str,
        messages: Sequence[ConversationMessage],
    ) -> Optional[TokenBudget]:
        if not self.token_tracker.has_limit(provider.name):
            logger.debug("No token limit configured for %s; skipping budget check", provider.name)
            return None
        used = count_tokens(system_prompt) + estimate_conversation_tokens(messages)
        budget = self.token_tracker.check_budget(system_prompt, provider.name, token_count=used)
        if budget.over_budget:
            raise BudgetExceededError(budget)
        return budget

    async def _call_provider(
        self,
        provider: LLMProvider,
        system_prompt: str,
        state: _RunState,
        response: _ProviderResponse,
        retry_budget: RetryBudget,
        cancel_event: asyncio.Event,
    ) -> AsyncIterator[AgentEvent]:
        """Run one provider call under the retry policy, streaming its events.

        Text already streamed by a failed attempt stays visible to the
        consumer; the retried attempt streams from the start again.
        """
        queue: "asyncio.Queue[AgentEvent]" = asyncio.Queue()
        tool_definitions = self.tools.definitions()

        async def attempt() -> None:
            response.reset()
            async for chunk in provider.stream(
                state.messages,
                system_prompt=system_prompt,
                tools=tool_definitions,
                cancel_event=cancel_event,
            ):
                if chunk.type == "text" and chunk.content:
                    response.text += chunk.content
                    queue.put_nowait(ChunkEvent(content=chunk.content))
                elif chunk.type == "thinking" and chunk.content:
                    queue.put_nowait(ThinkingEvent(message=chunk.content))
                elif chunk.type == "tool_calls":
                    response.tool_calls.extend(chunk.tool_calls)
                response.usage.add(chunk.usage)

        task = asyncio.ensure_future(
            self.retry_policy.wrap_call(provider.name, retry_budget, attempt, cancel_event=cancel_event)
        )
        events = relay_events(task, queue)
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()

    async def _execute_tool(
        self,
        call: ToolCall,
        cancel_event: asyncio.Event,
        confirm: Optional[ConfirmFunc],
    ) -> Tuple[ToolResult, float]:
        started = time.perf_counter()
        tool = self.tools.get(call.name)
        if tool is None:
            logger.warning("Model requested unknown tool %s", call.name)
            result = ToolResult.fail(
                f"Unknown tool: {call.name}. Available tools: {', '.join(self.tools.names())}",
                "UNKNOWN_TOOL",
                recoverable=True,
            )
        else:
            result = await self.safety_manager.safe_execute(tool, dict(call.arguments), cancel_event, confirm)
        return result, round((time.perf_counter() - started) * 1000, 1)

    def _result_events(
        self,
        call: ToolCall,
        result: ToolResult,
        tool_ms: float,
        total_ms: float,
    ) -> List[AgentEvent]:
        details = ProcessingDetails(tool_duration_ms=tool_ms, total_duration_ms=total_ms)
        preview = generate_result_preview(call.name, call.arguments, result)
        if result.success:
            message = f"{call.name} completed"
        elif result.cancelled:
            message = f"{call.name} cancelled"
        else:
            message = f"{call.name} failed: {result.error.message if result.error else 'unknown error'}"

        events: List[AgentEvent] = [
            ProcessingEvent(message=message, tool_call_id=call.id, details=details, result_preview=preview)
        ]
        events.extend(extract_evidence(call.name, call.arguments, result, call.id))
        if self.debug:
            events.append(
                DebugToolResultEvent(
                    message=message,
                    tool_call_id=call.id,
                    tool_name=call.name,
                    tool_result=result.to_dict(),
                    details=details,
                    result_preview=preview,
                )
            )
        return events
