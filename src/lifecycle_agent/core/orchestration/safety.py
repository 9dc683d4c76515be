"""Guarded tool execution: validation, confirmation, timeout, cancellation, output caps."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from lifecycle_agent.core.observability import get_audit_logger
from lifecycle_agent.core.orchestration.output_limiter import OutputLimiter
from lifecycle_agent.core.orchestration.tools import Tool, ToolResult, ToolSafetyLevel

logger = logging.getLogger(__name__)

DEFAULT_EXECUTION_TIMEOUT = 30.0
DEFAULT_CANCEL_GRACE = 5.0


@dataclass(frozen=True)
class ConfirmationRequest:
    """What the user is asked to approve before a mutating tool runs."""

    tool_name: str
    description: str
    safety_level: ToolSafetyLevel
    args: Dict[str, Any]


ConfirmFunc = Callable[[ConfirmationRequest], Awaitable[bool]]


def _format_validation_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return ", ".join(parts)


class ToolSafetyManager:
    """Runs tools behind the checks every execution must pass.

    Args:
        require_confirmation: Ask before cautious tools (dangerous tools always ask)
        execution_timeout: Seconds before a tool is abandoned with ``TIMEOUT``
        output_limiter: Caps ``agent_content`` of successful results
        cancel_grace: Seconds a cancelled or timed-out tool gets to finish
            its cleanup before the result is returned
    """

    def __init__(
        self,
        require_confirmation: bool = True,
        execution_timeout: float = DEFAULT_EXECUTION_TIMEOUT,
        output_limiter: Optional[OutputLimiter] = None,
        cancel_grace: float = DEFAULT_CANCEL_GRACE,
    ):
        self.require_confirmation = require_confirmation
        self.execution_timeout = execution_timeout
        self.output_limiter = output_limiter or OutputLimiter()
        self.cancel_grace = cancel_grace

    def needs_confirmation(self, tool: Tool, args: Dict[str, Any]) -> bool:
        if tool.safety_level == ToolSafetyLevel.DANGEROUS:
            required = True
        elif tool.safety_level == ToolSafetyLevel.CAUTIOUS:
            required = self.require_confirmation
        else:
            required = False
        if required and tool.should_confirm is not None:
            return bool(tool.should_confirm(args))
        return required

    async def safe_execute(
        self,
        tool: Tool,
        args: Dict[str, Any],
        cancel_event: asyncio.Event,
        confirm: Optional[ConfirmFunc] = None,
    ) -> ToolResult:
        """Execute ``tool``; every failure mode comes back as a ``ToolResult``."""
        if cancel_event.is_set():
            return ToolResult.cancelled_result(tool.name)

        try:
            validated = tool.parameters.model_validate(args).model_dump()
        except ValidationError as exc:
            message = _format_validation_errors(exc)
            logger.warning("Tool %s argument validation failed: %s", tool.name, message)
            return ToolResult.fail(f"Invalid arguments: {message}", "INVALID_ARGUMENTS", recoverable=True)

        if self.needs_confirmation(tool, validated):
            if confirm is None:
                logger.error("Tool %s requires confirmation but no handler is available", tool.name)
                return ToolResult.fail(
                    "This operation requires user confirmation, but no confirmation handler is available.",
                    "NO_CONFIRMATION_HANDLER",
                )
            request = ConfirmationRequest(
                tool_name=tool.name,
                description=tool.description,
                safety_level=tool.safety_level,
                args=validated,
            )
            if not await confirm(request):
                return ToolResult.fail("Operation cancelled by user", "USER_CANCELLED")

        started = time.perf_counter()
        result = await self._run_with_limits(tool, validated, cancel_event)
        duration_ms = (time.perf_counter() - started) * 1000

        if result.success and result.agent_content:
            result.agent_content = self.output_limiter.limit(result.agent_content)

        if not result.success and result.error is not None and not result.cancelled:
            level = logging.WARNING if result.error.recoverable else logging.ERROR
            logger.log(
                level,
                "Tool %s failed code=%s recoverable=%s: %s",
                tool.name,
                result.error.code,
                result.error.recoverable,
                result.error.message,
            )
        get_audit_logger().tool_execution(
            tool.name,
            success=result.success,
            duration_ms=round(duration_ms, 1),
            cancelled=result.cancelled,
        )
        return result

    async def _run_with_limits(
        self,
        tool: Tool,
        args: Dict[str, Any],
        cancel_event: asyncio.Event,
    ) -> ToolResult:
        task = asyncio.ensure_future(tool.execute(args, cancel_event))
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.execution_timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task in done:
            try:
                return task.result()
            except Exception as exc:
                code = getattr(exc, "code", None)
                return ToolResult.fail(
                    str(exc) or type(exc).__name__,
                    code if isinstance(code, str) else "EXECUTION_ERROR",
                    recoverable=True,
                    details={"exception": type(exc).__name__},
                )

        await self._stop_tool(tool, task)
        if cancel_event.is_set():
            return ToolResult.cancelled_result(tool.name)

        logger.warning("Tool %s timed out after %.1fs", tool.name, self.execution_timeout)
        return ToolResult.fail(
            f"{tool.name} timed out after {self.execution_timeout:g} seconds",
            "TIMEOUT",
            recoverable=True,
            suggested_action="The operation took too long. Try narrowing your query.",
        )

    async def _stop_tool(self, tool: Tool, task: "asyncio.Future[ToolResult]") -> None:
        """Cancel ``task`` and wait for its cleanup so it cannot overlap the next provider call."""
        task.cancel()
        done, _ = await asyncio.wait({task}, timeout=self.cancel_grace)
        if not done:
            logger.warning("Tool %s still running %.1fs after cancellation", tool.name, self.cancel_grace)
        elif not task.cancelled() and task.exception() is not None:
            logger.warning("Tool %s failed while being cancelled: %s", tool.name, task.exception())
