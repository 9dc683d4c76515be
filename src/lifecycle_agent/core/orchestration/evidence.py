"""Structured citations and short previews derived from tool results."""

import json
from pathlib import PurePosixPath
from typing import Any, Dict, List, Mapping, Optional

from lifecycle_agent.core.orchestration.events import (
    AgentEvent,
    EvidenceCommitEvent,
    EvidenceFileEvent,
    EvidenceResourceEvent,
)
from lifecycle_agent.core.orchestration.tools import ToolResult

PREVIEW_MAX_CHARS = 100

_LANGUAGE_BY_EXTENSION = {
    "ts": "typescript",
    "tsx": "typescriptreact",
    "js": "javascript",
    "jsx": "javascriptreact",
    "py": "python",
    "go": "go",
    "yaml": "yaml",
    "yml": "yaml",
    "json": "json",
    "md": "markdown",
    "rs": "rust",
    "rb": "ruby",
    "java": "java",
    "sh": "shell",
    "css": "css",
    "html": "html",
}

_RESOURCE_TOOLS = frozenset({"get_k8s_resources", "get_pod_logs", "patch_k8s_resource", "get_lifecycle_logs"})


def infer_language(file_path: str) -> Optional[str]:
    suffix = PurePosixPath(file_path).suffix.lstrip(".").lower()
    return _LANGUAGE_BY_EXTENSION.get(suffix) if suffix else None


def _truncate(text: str, max_len: int = PREVIEW_MAX_CHARS) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def _parse(content: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _repository(args: Mapping[str, Any]) -> str:
    return f"{args.get('repository_owner') or ''}/{args.get('repository_name') or ''}"


def extract_evidence(
    tool_name: str,
    args: Mapping[str, Any],
    result: ToolResult,
    tool_call_id: str,
) -> List[AgentEvent]:
    """Evidence events for a successful tool result; empty for anything else."""
    if not result.success:
        return []

    if tool_name == "get_file":
        parsed = _parse(result.agent_content) or {}
        file_path = str(parsed.get("path") or args.get("file_path") or "")
        return [
            EvidenceFileEvent(
                tool_call_id=tool_call_id,
                file_path=file_path,
                repository=_repository(args),
                branch=str(args["branch"]) if args.get("branch") else None,
                language=infer_language(file_path),
            )
        ]

    if tool_name == "update_file":
        parsed = _parse(result.agent_content) or {}
        file_path = str(args.get("file_path") or "")
        events: List[AgentEvent] = []
        if parsed.get("commit_sha") and parsed.get("commit_url"):
            events.append(
                EvidenceCommitEvent(
                    tool_call_id=tool_call_id,
                    commit_url=str(parsed["commit_url"]),
                    commit_sha=str(parsed["commit_sha"]),
                    commit_message=str(args.get("commit_message") or ""),
                    file_paths=[file_path],
                )
            )
        events.append(
            EvidenceFileEvent(
                tool_call_id=tool_call_id,
                file_path=file_path,
                repository=_repository(args),
                branch=str(args["branch"]) if args.get("branch") else None,
                language=infer_language(file_path),
            )
        )
        return events

    if tool_name in _RESOURCE_TOOLS:
        if tool_name == "get_pod_logs":
            resource_type, resource_name = "pod", str(args.get("pod_name") or "")
        else:
            resource_type = str(args.get("resource_type") or "unknown")
            resource_name = str(args.get("name") or "")
        return [
            EvidenceResourceEvent(
                tool_call_id=tool_call_id,
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=str(args["namespace"]) if args.get("namespace") else None,
            )
        ]

    return []


def generate_result_preview(tool_name: str, args: Mapping[str, Any], result: ToolResult) -> Optional[str]:
    """One-line summary of a result for progress events, at most 100 chars."""
    if not result.success:
        return None

    parsed = _parse(result.agent_content)

    if tool_name == "get_file":
        if parsed is None:
            return None
        path = str(parsed.get("path") or args.get("file_path") or "")
        content = parsed.get("content")
        line_count = len(content.split("\n")) if isinstance(content, str) else 0
        return _truncate(f"{path} ({line_count} lines)")

    if tool_name == "update_file":
        message = str((parsed or {}).get("message") or args.get("commit_message") or "")
        return _truncate(f"Committed: {message}")

    if tool_name == "get_k8s_resources" and parsed is not None:
        pods = parsed.get("pods")
        if isinstance(pods, list):
            phases: Dict[str, int] = {}
            for pod in pods:
                phase = str(pod.get("phase") or "Unknown") if isinstance(pod, dict) else "Unknown"
                phases[phase] = phases.get(phase, 0) + 1
            summary = ", ".join(f"{count} {phase}" for phase, count in phases.items())
            return _truncate(f"{len(pods)} pods: {summary}")
        items = parsed.get("items")
        if isinstance(items, list):
            return _truncate(f"{len(items)} {args.get('resource_type') or 'resources'} found")
        return None

    if tool_name == "get_pod_logs":
        line_count = len(result.agent_content.splitlines())
        return _truncate(f"{args.get('pod_name') or 'pod'}: {line_count} log lines")

    first_line = next(iter(result.agent_content.strip().splitlines()), "")
    return _truncate(first_line) if first_line else None
