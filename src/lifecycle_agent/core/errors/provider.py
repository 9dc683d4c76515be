"""LLM provider error classes.

Provider integrations raise these so that the classifier can read status,
headers, and vendor codes without importing any vendor SDK.
"""

from typing import Any, Mapping, Optional


class LLMError(Exception):
    """Base exception for LLM provider operations.

    Attributes:
        message: Human-readable error description
        provider: Name of the provider that raised the error
        status_code: HTTP status code if applicable
        headers: Response headers (used for retry-after directives)
        code: Vendor-specific error code, e.g. ``RESOURCE_EXHAUSTED``
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        headers: Optional[Mapping[str, Any]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.headers = dict(headers) if headers else {}
        self.code = code


class RateLimitError(LLMError):
    """Rate limit exceeded error.

    Attributes:
        retry_after: Seconds to wait before retrying, if the provider said so
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
        headers: Optional[Mapping[str, Any]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message, provider=provider, status_code=429, headers=headers, code=code)
        self.retry_after = retry_after


class AuthenticationError(LLMError):
    """Authentication failed error."""

    def __init__(self, message: str = "Authentication failed", *, provider: Optional[str] = None):
        super().__init__(message, provider=provider, status_code=401)


class PermissionDeniedError(LLMError):
    """API key lacks permission for the requested model or operation."""

    def __init__(self, message: str = "Permission denied", *, provider: Optional[str] = None):
        super().__init__(message, provider=provider, status_code=403)


class InvalidRequestError(LLMError):
    """Invalid request error (bad parameters, etc.)."""

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        param: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message, provider=provider, status_code=400, code=code)
        self.param = param


class NotFoundError(LLMError):
    """Requested model or resource not found."""

    def __init__(self, message: str, *, provider: Optional[str] = None, model: Optional[str] = None):
        super().__init__(message, provider=provider, status_code=404)
        self.model = model


class ServerError(LLMError):
    """Provider returned a 5xx response."""

    def __init__(
        self,
        message: str = "Provider server error",
        *,
        provider: Optional[str] = None,
        status_code: int = 500,
        headers: Optional[Mapping[str, Any]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message, provider=provider, status_code=status_code, headers=headers, code=code)


class ProviderConnectionError(LLMError):
    """The provider could not be reached."""


class ProviderTimeoutError(LLMError):
    """The provider did not answer in time."""
