"""Audit logging for agent run events.

Provides structured audit logging with automatic correlation ID and build
UUID population from the run context.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from lifecycle_agent.core.context import get_build_uuid, get_correlation_id


class AuditEventType(Enum):
    """Types of audit events emitted by the engine."""

    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_ABORTED = "run_aborted"
    RETRY_ATTEMPT = "retry_attempt"
    CIRCUIT_STATE_CHANGE = "circuit_state_change"
    TOOL_EXECUTION = "tool_execution"
    BUDGET_EXCEEDED = "budget_exceeded"


@dataclass
class AuditEvent:
    """Structured audit event."""

    event_type: AuditEventType
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    correlation_id: Optional[str] = None
    build_uuid: Optional[str] = None

    def __post_init__(self) -> None:
        """Auto-populate correlation_id and build_uuid from context if not set."""
        if self.correlation_id is None:
            self.correlation_id = get_correlation_id() or None
        if self.build_uuid is None:
            self.build_uuid = get_build_uuid() or None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }
        if self.correlation_id:
            result["correlation_id"] = self.correlation_id
        if self.build_uuid:
            result["build_uuid"] = self.build_uuid
        return result


class AuditLogger:
    """
    Structured audit logging for run events.

    Audit logs are written to a separate logger for easy filtering.
    """

    def __init__(self):
        self._logger = logging.getLogger("lifecycle_agent.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._logger.info(f"AUDIT: {event.event_type.value}", extra={"audit": event.to_dict()})

    def tool_execution(
        self,
        tool_name: str,
        success: bool = True,
        duration_ms: Optional[float] = None,
        **details: Any,
    ) -> None:
        """Log a tool execution."""
        self.log(
            AuditEvent(
                event_type=AuditEventType.TOOL_EXECUTION,
                details={
                    "tool": tool_name,
                    "success": success,
                    "duration_ms": duration_ms,
                    **details,
                },
            )
        )


# Global audit logger
_audit = AuditLogger()


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger."""
    return _audit


def audit_log(event_type: str, **details: Any) -> None:
    """
    Convenience function for audit logging.

    Args:
        event_type: Type of event (run_started, run_completed, run_aborted,
                    retry_attempt, circuit_state_change, tool_execution,
                    budget_exceeded)
        **details: Additional details to include in the audit log
    """
    try:
        event_enum = AuditEventType(event_type)
    except ValueError:
        event_enum = AuditEventType.TOOL_EXECUTION
        details["original_event_type"] = event_type

    _audit.log(AuditEvent(event_type=event_enum, details=details))
