"""Conversation-turn entry point wrapping the orchestrator.

Reads the transcript tail, masks stale tool output, compresses what is still
too long, runs the orchestrator, and persists the turn once it finishes.
"""

import asyncio
import logging
from typing import AsyncIterator, List, Optional

from lifecycle_agent.core.context import run_context
from lifecycle_agent.core.orchestration.compression import ConversationManager
from lifecycle_agent.core.orchestration.events import (
    AgentEvent,
    CompleteEvent,
    CompleteJsonEvent,
    DebugContextEvent,
    ErrorEvent,
    relay_events,
)
from lifecycle_agent.core.orchestration.masking import (
    DEFAULT_RECENCY_WINDOW,
    DEFAULT_TOKEN_THRESHOLD,
    mask_observations,
)
from lifecycle_agent.core.orchestration.messages import ConversationMessage, assistant_text, user_text
from lifecycle_agent.core.orchestration.orchestrator import OrchestrationResult, ToolOrchestrator
from lifecycle_agent.core.orchestration.protocols import ConversationStore, LLMProvider, StoredMessage
from lifecycle_agent.core.orchestration.safety import ConfirmFunc
from lifecycle_agent.core.resilience import ErrorCategory, SuggestedAction

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class AgentService:
    """Runs one user turn against a conversation.

    Args:
        orchestrator: Configured orchestration loop
        store: Transcript persistence
        history_limit: How many stored messages to replay as context
        masking_recency_window: Tool turns always kept verbatim
        masking_token_threshold: Conversation size at which masking starts
        conversation_manager: Compresses histories that stay too long after masking
    """

    def __init__(
        self,
        orchestrator: ToolOrchestrator,
        store: ConversationStore,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        masking_recency_window: int = DEFAULT_RECENCY_WINDOW,
        masking_token_threshold: int = DEFAULT_TOKEN_THRESHOLD,
        conversation_manager: Optional[ConversationManager] = None,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.history_limit = history_limit
        self.masking_recency_window = masking_recency_window
        self.masking_token_threshold = masking_token_threshold
        self.conversation_manager = conversation_manager or ConversationManager()

    async def _load_history(self, build_uuid: str) -> List[ConversationMessage]:
        stored = await self.store.read_tail(build_uuid, self.history_limit)
        return [user_text(m.content) if m.role == "user" else assistant_text(m.content) for m in stored]

    async def process_turn(
        self,
        build_uuid: str,
        user_message: str,
        provider: LLMProvider,
        system_prompt: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        confirm: Optional[ConfirmFunc] = None,
    ) -> AsyncIterator[AgentEvent]:
        """Run a turn and yield its events; the last event is terminal unless cancelled.

        The turn runs in its own task so the run context it binds never
        reaches the consumer. Closing the iterator early cancels the turn.
        """
        queue: "asyncio.Queue[AgentEvent]" = asyncio.Queue()
        turn = asyncio.ensure_future(
            self._run_turn(queue, build_uuid, user_message, provider, system_prompt, cancel_event, confirm)
        )
        events = relay_events(turn, queue)
        try:
            async for event in events:
                yield event
        finally:
            await events.aclose()

    async def _run_turn(
        self,
        queue: "asyncio.Queue[AgentEvent]",
        build_uuid: str,
        user_message: str,
        provider: LLMProvider,
        system_prompt: str,
        cancel_event: Optional[asyncio.Event],
        confirm: Optional[ConfirmFunc],
    ) -> None:
        with run_context(build_uuid=build_uuid) as run_id:
            logger.info("Processing turn build=%s run=%s", build_uuid, run_id)
            try:
                await self._execute_turn(queue, build_uuid, user_message, provider, system_prompt, cancel_event, confirm)
            except Exception:
                # Anything reaching here is a defect, not a provider failure.
                logger.exception("Agent run failed unexpectedly build=%s", build_uuid)
                await self.store.append_message(build_uuid, StoredMessage(role="user", content=user_message))
                queue.put_nowait(
                    ErrorEvent(
                        user_message="Something went wrong. Please try again.",
                        category=ErrorCategory.AMBIGUOUS,
                        suggested_action=SuggestedAction.RETRY,
                        model_name=provider.model_id,
                        code="INTERNAL_ERROR",
                    )
                )

    async def _execute_turn(
        self,
        queue: "asyncio.Queue[AgentEvent]",
        build_uuid: str,
        user_message: str,
        provider: LLMProvider,
        system_prompt: str,
        cancel_event: Optional[asyncio.Event],
        confirm: Optional[ConfirmFunc],
    ) -> None:
        history = await self._load_history(build_uuid)
        history.append(user_text(user_message))
        masking = mask_observations(
            history,
            recency_window=self.masking_recency_window,
            token_threshold=self.masking_token_threshold,
        )
        messages = await self._compress(masking.messages, provider, cancel_event)

        if self.orchestrator.debug:
            queue.put_nowait(
                DebugContextEvent(
                    system_prompt=system_prompt,
                    provider=provider.name,
                    model_id=provider.model_id,
                    masking_stats=masking.stats.to_dict(),
                )
            )

        run = self.orchestrator.start(
            provider,
            system_prompt,
            messages,
            cancel_event=cancel_event,
            confirm=confirm,
        )
        async for event in run:
            if event.is_terminal:
                await self._persist(build_uuid, user_message, event, run.result)
            queue.put_nowait(event)

    async def _compress(
        self,
        messages: List[ConversationMessage],
        provider: LLMProvider,
        cancel_event: Optional[asyncio.Event],
    ) -> List[ConversationMessage]:
        if len(messages) < 2 or not self.conversation_manager.should_compress(messages):
            return messages
        try:
            compacted = await self.conversation_manager.compact(messages, provider, cancel_event=cancel_event)
        except Exception as exc:
            # The token budget check still guards the run.
            logger.warning("Conversation compression failed, continuing uncompressed: %s", exc)
            return messages
        logger.info("Conversation compressed from %d to %d messages", len(messages), len(compacted))
        return compacted

    async def _persist(
        self,
        build_uuid: str,
        user_message: str,
        event: AgentEvent,
        result: Optional[OrchestrationResult],
    ) -> None:
        await self.store.append_message(build_uuid, StoredMessage(role="user", content=user_message))
        if isinstance(event, (CompleteEvent, CompleteJsonEvent)) and result is not None:
            metadata = {
                "totalInvestigationTimeMs": event.total_investigation_time_ms,
                "isJson": isinstance(event, CompleteJsonEvent),
                "iterations": result.iterations,
                "toolCalls": result.total_tool_calls,
            }
            if isinstance(event, CompleteEvent) and event.interrupted:
                metadata["interrupted"] = True
            await self.store.append_message(
                build_uuid,
                StoredMessage(role="assistant", content=result.response, metadata=metadata),
            )
