"""Runaway-loop protection for a single agent run.

The detector keeps an append-only history of tool calls and answers three
questions for the orchestration loop: too many iterations, too many tool
calls, or the same call repeated inside a short trailing window.
"""

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

REPEAT_WINDOW = 5


@dataclass(frozen=True)
class LoopProtectionConfig:
    """Per-run ceilings; immutable once a run starts."""

    max_iterations: int = 20
    max_tool_calls: int = 50
    max_repeated_calls: int = 1

    def __post_init__(self) -> None:
        for name in ("max_iterations", "max_tool_calls", "max_repeated_calls"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class ToolCallRecord:
    tool_name: str
    args_fingerprint: str
    iteration: int
    timestamp: float = field(default_factory=time.time)


class LoopViolationReason(str, Enum):
    ITERATION_LIMIT = "iteration_limit"
    TOOL_CALL_LIMIT = "tool_call_limit"
    REPEATED_CALL = "repeated_call"


@dataclass(frozen=True)
class LoopViolation:
    """Why a run was stopped, with a hint the agent or user can act on."""

    reason: LoopViolationReason
    message: str
    hint: str
    tool_name: Optional[str] = None
    count: Optional[int] = None


def args_fingerprint(args: Optional[Mapping[str, Any]]) -> str:
    """Deterministic serialization used for argument equality."""
    return json.dumps(args or {}, sort_keys=True, separators=(",", ":"), default=str)


class LoopDetector:
    """Tracks tool-call history for one run and flags runaway behavior."""

    def __init__(self, config: Optional[LoopProtectionConfig] = None):
        self.config = config or LoopProtectionConfig()
        self._history: List[ToolCallRecord] = []

    @property
    def history(self) -> Tuple[ToolCallRecord, ...]:
        return tuple(self._history)

    def record_call(self, tool_name: str, args: Optional[Mapping[str, Any]], iteration: int) -> ToolCallRecord:
        record = ToolCallRecord(tool_name=tool_name, args_fingerprint=args_fingerprint(args), iteration=iteration)
        self._history.append(record)
        return record

    def count_repeated_calls(
        self,
        tool_name: str,
        args: Optional[Mapping[str, Any]],
        current_iteration: int,
    ) -> int:
        """Count identical calls recorded within the trailing window.

        A record at iteration ``i`` counts when ``0 <= current_iteration - i
        < REPEAT_WINDOW``; calls from the current iteration are included.
        """
        fingerprint = args_fingerprint(args)
        return sum(
            1
            for record in self._history
            if record.tool_name == tool_name
            and record.args_fingerprint == fingerprint
            and 0 <= current_iteration - record.iteration < REPEAT_WINDOW
        )

    def get_loop_hint(self, tool_name: str, args: Optional[Mapping[str, Any]]) -> str:
        args = args or {}
        if tool_name == "get_file":
            target = args.get("file_path") or "this file"
            return f"You already read {target}. Use the content from the previous result instead of re-fetching."
        if tool_name == "get_k8s_resources" and not args.get("name"):
            return (
                "You keep searching for resources with the same criteria. "
                "If resources don't exist, check deployment status instead."
            )
        if tool_name == "get_pod_logs":
            return (
                "Repeatedly fetching logs suggests the pattern isn't found. "
                "Try a different search term or check a different service."
            )
        return "Consider trying a different tool or different arguments."

    def iteration_limit_exceeded(self, iteration: int) -> bool:
        return iteration > self.config.max_iterations

    def tool_call_limit_exceeded(self, total_tool_calls: int) -> bool:
        return total_tool_calls > self.config.max_tool_calls

    def repeat_limit_exceeded(self, prior_count: int) -> bool:
        # The pending call would be number prior_count + 1 inside the window.
        return prior_count + 1 > self.config.max_repeated_calls

    def check_iteration(self, iteration: int) -> Optional[LoopViolation]:
        if not self.iteration_limit_exceeded(iteration):
            return None
        limit = self.config.max_iterations
        return LoopViolation(
            reason=LoopViolationReason.ITERATION_LIMIT,
            message=f"Investigation incomplete - hit iteration limit ({limit}).",
            hint="Ask a narrower question or continue the investigation in a new message.",
            count=limit,
        )

    def check_tool_calls(self, total_tool_calls: int) -> Optional[LoopViolation]:
        if not self.tool_call_limit_exceeded(total_tool_calls):
            return None
        return LoopViolation(
            reason=LoopViolationReason.TOOL_CALL_LIMIT,
            message=(
                f"Investigation stopped after {total_tool_calls} tool calls "
                f"(limit {self.config.max_tool_calls})."
            ),
            hint="Ask a narrower question so fewer tools are needed.",
            count=total_tool_calls,
        )

    def check_tool_call(
        self,
        tool_name: str,
        args: Optional[Mapping[str, Any]],
        current_iteration: int,
    ) -> Optional[LoopViolation]:
        count = self.count_repeated_calls(tool_name, args, current_iteration)
        if not self.repeat_limit_exceeded(count):
            return None
        return LoopViolation(
            reason=LoopViolationReason.REPEATED_CALL,
            message=(
                f"Loop detected: {tool_name} was already called {count} time(s) "
                f"with the same arguments in the last {REPEAT_WINDOW} iterations."
            ),
            hint=self.get_loop_hint(tool_name, args),
            tool_name=tool_name,
            count=count,
        )

    def reset(self) -> None:
        """Clear history; the configuration is kept."""
        self._history = []
