"""Resilience data models, enums, and protocols.

Defines the core types used across the resilience sub-package:
- ErrorKind enum, the closed classification taxonomy
- ErrorCategory / SuggestedAction for user-facing error events
- ClassifiedError, the normalized view of a provider failure
- SleepFunc protocol for injectable async sleep
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol


class ErrorKind(str, Enum):
    """Classification of provider failures for retry decisions."""

    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"
    UNKNOWN = "unknown"


class ErrorCategory(str, Enum):
    """Category reported to users on the ``error`` event."""

    RATE_LIMITED = "rate-limited"
    TRANSIENT = "transient"
    DETERMINISTIC = "deterministic"
    AMBIGUOUS = "ambiguous"


class SuggestedAction(str, Enum):
    """What the user can do about a terminal failure."""

    RETRY = "retry"
    SWITCH_MODEL = "switch-model"
    CHECK_CONFIG = "check-config"


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT})

_CATEGORY_BY_KIND = {
    ErrorKind.RATE_LIMITED: ErrorCategory.RATE_LIMITED,
    ErrorKind.TRANSIENT: ErrorCategory.TRANSIENT,
    ErrorKind.FATAL: ErrorCategory.DETERMINISTIC,
    ErrorKind.UNKNOWN: ErrorCategory.AMBIGUOUS,
}


@dataclass(frozen=True)
class ClassifiedError:
    """Provider-agnostic description of a failure.

    ``retryable`` always agrees with ``kind``; build instances through
    :meth:`of` rather than passing it by hand.
    """

    kind: ErrorKind
    retryable: bool
    retry_after_seconds: Optional[float] = None
    provider_name: Optional[str] = None
    status_code: Optional[int] = None
    message: str = ""
    is_auth: bool = False
    original: Optional[BaseException] = field(default=None, compare=False, repr=False)

    @classmethod
    def of(
        cls,
        kind: ErrorKind,
        *,
        retry_after_seconds: Optional[float] = None,
        provider_name: Optional[str] = None,
        status_code: Optional[int] = None,
        message: str = "",
        is_auth: bool = False,
        original: Optional[BaseException] = None,
    ) -> "ClassifiedError":
        return cls(
            kind=kind,
            retryable=kind in RETRYABLE_KINDS,
            retry_after_seconds=retry_after_seconds,
            provider_name=provider_name,
            status_code=status_code,
            message=message,
            is_auth=is_auth,
            original=original,
        )

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORY_BY_KIND[self.kind]


def is_retryable(classified: ClassifiedError) -> bool:
    """Pure predicate used by the retry policy."""
    return classified.retryable


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...
