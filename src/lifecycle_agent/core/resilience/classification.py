"""Error classification for provider failures.

``classify`` is the single seam that turns heterogeneous provider errors
(vendor SDK exceptions, httpx errors, our own ``LLMError`` family) into the
closed :class:`ClassifiedError` taxonomy. Vendor SDK exceptions are matched by
class name and attributes so no SDK has to be importable.
"""

import asyncio
import logging
import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from lifecycle_agent.core.resilience.models import ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

MAX_RETRY_AFTER_SECONDS = 300.0

ClassificationRule = Callable[[BaseException], Optional[ErrorKind]]

_RATE_LIMITED_TYPES = frozenset({"RateLimitError"})
_TRANSIENT_TYPES = frozenset(
    {
        "InternalServerError",
        "APIConnectionError",
        "APITimeoutError",
        "ConflictError",
        "ServiceUnavailableError",
        "ServerError",
        "ProviderConnectionError",
        "ProviderTimeoutError",
    }
)
_FATAL_TYPES = frozenset(
    {
        "AuthenticationError",
        "PermissionDeniedError",
        "BadRequestError",
        "NotFoundError",
        "UnprocessableEntityError",
        "InvalidRequestError",
    }
)
_AUTH_TYPES = frozenset({"AuthenticationError", "PermissionDeniedError"})
_FATAL_STATUSES = frozenset({400, 401, 403, 404, 422})
_TRANSIENT_STATUSES = frozenset({408, 409})


def _type_names(error: BaseException) -> List[str]:
    return [klass.__name__ for klass in type(error).__mro__]


def get_status_code(error: BaseException) -> Optional[int]:
    """Best-effort HTTP status extraction across SDK error shapes."""
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool) and 100 <= value <= 599:
            return value
    response = getattr(error, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
    return None


def _vendor_code(error: BaseException) -> str:
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return code
    body = getattr(error, "body", None)
    if isinstance(body, Mapping):
        inner = body.get("error", body)
        if isinstance(inner, Mapping):
            return str(inner.get("type") or inner.get("status") or inner.get("code") or "")
    return ""


def _get_headers(error: BaseException) -> Optional[Any]:
    headers = getattr(error, "headers", None)
    if headers:
        return headers
    response = getattr(error, "response", None)
    if response is not None:
        return getattr(response, "headers", None)
    return None


def _header_value(headers: Any, name: str) -> Optional[str]:
    if isinstance(headers, httpx.Headers):
        return headers.get(name)
    if isinstance(headers, Mapping):
        for key, value in headers.items():
            if str(key).lower() == name:
                return None if value is None else str(value)
        return None
    getter = getattr(headers, "get", None)
    if callable(getter):
        value = getter(name)
        return None if value is None else str(value)
    return None


def extract_retry_after(error: BaseException, now: Optional[datetime] = None) -> Optional[float]:
    """Read a server-supplied retry directive from an error.

    Supports the ``retry-after`` header as delta-seconds (capped at
    ``MAX_RETRY_AFTER_SECONDS``) or as an HTTP date, and a ``retry_after``
    attribute as set by :class:`~lifecycle_agent.core.errors.RateLimitError`.

    Returns:
        Seconds to wait, or None when the error carries no directive.
    """
    headers = _get_headers(error)
    raw = _header_value(headers, "retry-after") if headers is not None else None
    if raw is None:
        attr = getattr(error, "retry_after", None)
        if isinstance(attr, (int, float)) and not isinstance(attr, bool):
            return min(max(float(attr), 0.0), MAX_RETRY_AFTER_SECONDS)
        return None

    raw = raw.strip()
    try:
        seconds = float(raw)
    except ValueError:
        pass
    else:
        if math.isnan(seconds) or seconds < 0:
            return None
        return min(seconds, MAX_RETRY_AFTER_SECONDS)

    try:
        target = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        logger.debug("Unparseable retry-after header: %r", raw)
        return None
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    delta = (target - current).total_seconds()
    return float(max(0, math.ceil(delta)))


def is_auth_error(error: BaseException) -> bool:
    """True for invalid-key / permission failures."""
    if any(name in _AUTH_TYPES for name in _type_names(error)):
        return True
    return get_status_code(error) in (401, 403)


def _gemini_rule(error: BaseException) -> Optional[ErrorKind]:
    text = f"{_vendor_code(error)} {error}"
    if "MALFORMED_FUNCTION_CALL" in text:
        return ErrorKind.TRANSIENT
    if "RESOURCE_EXHAUSTED" in text:
        return ErrorKind.RATE_LIMITED
    return None


def _anthropic_rule(error: BaseException) -> Optional[ErrorKind]:
    if _vendor_code(error) == "overloaded_error" or get_status_code(error) == 529:
        return ErrorKind.TRANSIENT
    return None


_PROVIDER_RULES: Dict[str, List[ClassificationRule]] = {
    "gemini": [_gemini_rule],
    "anthropic": [_anthropic_rule],
}


def register_classification_rule(provider_name: str, rule: ClassificationRule) -> None:
    """Add a provider-specific rule; rules run before the generic ones."""
    _PROVIDER_RULES.setdefault(provider_name, []).append(rule)


def _generic_kind(error: BaseException, status: Optional[int]) -> ErrorKind:
    names = _type_names(error)
    if any(name in _RATE_LIMITED_TYPES for name in names):
        return ErrorKind.RATE_LIMITED
    if any(name in _TRANSIENT_TYPES for name in names):
        return ErrorKind.TRANSIENT
    if any(name in _FATAL_TYPES for name in names):
        return ErrorKind.FATAL

    if isinstance(error, (httpx.TimeoutException, httpx.TransportError, ConnectionError, asyncio.TimeoutError)):
        return ErrorKind.TRANSIENT

    if status is not None:
        if status == 429:
            return ErrorKind.RATE_LIMITED
        if status >= 500 or status in _TRANSIENT_STATUSES:
            return ErrorKind.TRANSIENT
        if status in _FATAL_STATUSES:
            return ErrorKind.FATAL
    return ErrorKind.UNKNOWN


def classify(provider_name: str, error: BaseException) -> ClassifiedError:
    """Map a raw provider failure into exactly one :class:`ErrorKind`.

    Args:
        provider_name: Provider the call went to (selects provider rules)
        error: The raw exception raised by the provider client

    Returns:
        Immutable classification; ``retry_after_seconds`` is set only when
        the provider supplied a retry directive.
    """
    status = get_status_code(error)

    kind: Optional[ErrorKind] = None
    for rule in _PROVIDER_RULES.get(provider_name, ()):
        kind = rule(error)
        if kind is not None:
            break
    if kind is None:
        kind = _generic_kind(error, status)

    classified = ClassifiedError.of(
        kind,
        retry_after_seconds=extract_retry_after(error),
        provider_name=provider_name,
        status_code=status,
        message=str(error) or type(error).__name__,
        is_auth=is_auth_error(error),
        original=error,
    )
    logger.debug(
        "Classified %s error from %s as %s (status=%s, retry_after=%s)",
        type(error).__name__,
        provider_name,
        kind.value,
        status,
        classified.retry_after_seconds,
    )
    return classified
