"""Tool capability model.

A tool is a plain data+function pair: metadata plus an async ``execute``
callable. There is no base class to inherit from.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ToolSafetyLevel(str, Enum):
    """How much confirmation a tool needs before it runs."""

    SAFE = "safe"
    CAUTIOUS = "cautious"
    DANGEROUS = "dangerous"


class ToolCategory(str, Enum):
    K8S = "k8s"
    GITHUB = "github"
    CODEFRESH = "codefresh"
    DATABASE = "database"
    MCP = "mcp"


@dataclass
class ToolError:
    """Structured tool failure returned to the agent."""

    message: str
    code: str
    recoverable: bool = False
    suggested_action: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "message": self.message,
            "code": self.code,
            "recoverable": self.recoverable,
        }
        if self.suggested_action:
            result["suggestedAction"] = self.suggested_action
        if self.details:
            result["details"] = self.details
        return result


@dataclass
class ToolResult:
    """Outcome of one tool execution.

    ``agent_content`` is what the model sees; ``display_content`` is an
    optional richer rendering for humans.
    """

    success: bool
    agent_content: str = ""
    display_content: Optional[str] = None
    error: Optional[ToolError] = None
    cancelled: bool = False

    @classmethod
    def ok(cls, agent_content: str, display_content: Optional[str] = None) -> "ToolResult":
        return cls(success=True, agent_content=agent_content, display_content=display_content)

    @classmethod
    def fail(
        cls,
        message: str,
        code: str,
        *,
        recoverable: bool = False,
        suggested_action: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "ToolResult":
        return cls(
            success=False,
            error=ToolError(
                message=message,
                code=code,
                recoverable=recoverable,
                suggested_action=suggested_action,
                details=details or {},
            ),
        )

    @classmethod
    def cancelled_result(cls, tool_name: str) -> "ToolResult":
        return cls(
            success=False,
            cancelled=True,
            error=ToolError(message=f"{tool_name} was cancelled", code="CANCELLED", recoverable=False),
        )

    def to_agent_text(self) -> str:
        """Text fed back to the model for this result."""
        if self.success:
            return self.agent_content
        if self.error is None:
            return "Tool failed"
        return f"Error ({self.error.code}): {self.error.message}"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"success": self.success}
        if self.agent_content:
            result["agentContent"] = self.agent_content
        if self.display_content:
            result["displayContent"] = self.display_content
        if self.error:
            result["error"] = self.error.to_dict()
        return result


ToolExecuteFunc = Callable[[Dict[str, Any], asyncio.Event], Awaitable[ToolResult]]


@dataclass(frozen=True)
class Tool:
    """A named capability the agent can invoke.

    ``execute(args, cancel_event)`` must observe ``cancel_event`` and return a
    cancelled result promptly once it is set. It may be invoked repeatedly
    with the same arguments.
    """

    name: str
    description: str
    parameters: Type[BaseModel]
    execute: ToolExecuteFunc
    safety_level: ToolSafetyLevel = ToolSafetyLevel.SAFE
    category: ToolCategory = ToolCategory.K8S
    should_confirm: Optional[Callable[[Dict[str, Any]], bool]] = None

    def parameters_schema(self) -> Dict[str, Any]:
        return self.parameters.model_json_schema()

    def definition(self) -> Dict[str, Any]:
        """Provider-neutral function definition."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters_schema(),
        }


class ToolRegistry:
    """Name-indexed set of tools available to a run."""

    def __init__(self, tools: Optional[List[Tool]] = None):
        self._tools: Dict[str, Tool] = {}
        self._lock = threading.Lock()
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        with self._lock:
            if tool.name in self._tools:
                logger.warning("Replacing already registered tool %s", tool.name)
            self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        with self._lock:
            return self._tools.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._tools)

    def tools(self) -> List[Tool]:
        with self._lock:
            return [self._tools[name] for name in sorted(self._tools)]

    def definitions(self) -> List[Dict[str, Any]]:
        return [tool.definition() for tool in self.tools()]

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)
