"""Size limits for tool output fed back to the model."""

import json
from typing import Any, Dict

DEFAULT_MAX_CHARS = 30_000
MARKER_RESERVE = 200
DEFAULT_HEAD_LINES = 50
DEFAULT_TAIL_LINES = 100


def _marker(kept: int, total: int) -> str:
    return f"\n[Truncated: showing {kept} of {total} chars; use tighter filters to get specific data]"


def _truncate_json_object(obj: Dict[str, Any], max_chars: int) -> str:
    # Shrink the largest fields first until the document fits.
    sizes = sorted(obj, key=lambda key: len(json.dumps(obj[key], default=str)), reverse=True)
    result = dict(obj)
    serialized = json.dumps(result, default=str)

    for key in sizes:
        if len(serialized) <= max_chars:
            break
        value = result[key]
        if isinstance(value, str) and len(value) > MARKER_RESERVE:
            overage = len(serialized) - max_chars
            target = max(100, len(value) - overage - MARKER_RESERVE)
            result[key] = value[:target] + _marker(target, len(value))
        elif isinstance(value, list) and len(value) > 5:
            result[key] = value[:3] + value[-2:]
        else:
            continue
        serialized = json.dumps(result, default=str)

    if len(serialized) > max_chars:
        marker = _marker(max_chars - MARKER_RESERVE, len(serialized))
        return serialized[: max_chars - len(marker)] + marker
    return serialized


def truncate_output(content: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Cap ``content`` at ``max_chars``, keeping JSON objects parseable where possible."""
    if len(content) <= max_chars:
        return content

    if content.lstrip().startswith("{"):
        try:
            parsed = json.loads(content)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            return _truncate_json_object(parsed, max_chars)

    marker = _marker(max_chars - MARKER_RESERVE, len(content))
    return content[: max_chars - len(marker)] + marker


def truncate_log_output(
    content: str,
    max_chars: int = DEFAULT_MAX_CHARS,
    head_lines: int = DEFAULT_HEAD_LINES,
    tail_lines: int = DEFAULT_TAIL_LINES,
) -> str:
    """Keep the head and tail of long logs, where the interesting lines usually are."""
    lines = content.split("\n")
    if len(lines) <= head_lines + tail_lines:
        return truncate_output(content, max_chars)

    omitted = len(lines) - head_lines - tail_lines
    marker = f"\n... [Truncated: {omitted} lines omitted of {len(lines)} total] ...\n"
    result = "\n".join(lines[:head_lines]) + marker + "\n".join(lines[-tail_lines:])
    return truncate_output(result, max_chars)


class OutputLimiter:
    """Applies the character cap to tool results."""

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS):
        self.max_chars = max_chars

    def limit(self, content: str) -> str:
        return truncate_output(content, self.max_chars)
