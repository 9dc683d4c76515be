"""Tests for provider error classification and retry-after extraction."""

from datetime import datetime, timezone

import httpx
import pytest

from lifecycle_agent.core.errors import (
    AuthenticationError,
    InvalidRequestError,
    LLMError,
    ProviderConnectionError,
    RateLimitError,
    ServerError,
)
from lifecycle_agent.core.resilience import (
    ErrorCategory,
    ErrorKind,
    SuggestedAction,
    build_user_message,
    classify,
    extract_retry_after,
    register_classification_rule,
    suggest_action,
)
from lifecycle_agent.core.resilience import classification


class OverloadedError(Exception):
    """Mimics a vendor SDK error carrying a JSON body."""

    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TestClassify:
    """Mapping raw errors to the closed error taxonomy."""

    def test_rate_limit_error_is_retryable(self):
        classified = classify("openai", RateLimitError(provider="openai"))
        assert classified.kind == ErrorKind.RATE_LIMITED
        assert classified.retryable is True
        assert classified.category == ErrorCategory.RATE_LIMITED
        assert classified.status_code == 429

    def test_server_error_is_transient(self):
        classified = classify("openai", ServerError("boom", provider="openai"))
        assert classified.kind == ErrorKind.TRANSIENT
        assert classified.retryable is True

    def test_connection_error_is_transient(self):
        assert classify("openai", ProviderConnectionError("reset")).kind == ErrorKind.TRANSIENT

    def test_httpx_timeout_is_transient(self):
        assert classify("openai", httpx.ReadTimeout("slow")).kind == ErrorKind.TRANSIENT

    def test_authentication_error_is_fatal_and_auth(self):
        classified = classify("openai", AuthenticationError(provider="openai"))
        assert classified.kind == ErrorKind.FATAL
        assert classified.retryable is False
        assert classified.is_auth is True
        assert classified.category == ErrorCategory.DETERMINISTIC

    def test_invalid_request_is_fatal_not_auth(self):
        classified = classify("openai", InvalidRequestError("bad schema"))
        assert classified.kind == ErrorKind.FATAL
        assert classified.is_auth is False

    def test_unrecognized_error_is_unknown_and_not_retryable(self):
        classified = classify("openai", RuntimeError("what happened"))
        assert classified.kind == ErrorKind.UNKNOWN
        assert classified.retryable is False
        assert classified.category == ErrorCategory.AMBIGUOUS

    @pytest.mark.parametrize(
        "status,kind",
        [
            (429, ErrorKind.RATE_LIMITED),
            (500, ErrorKind.TRANSIENT),
            (503, ErrorKind.TRANSIENT),
            (408, ErrorKind.TRANSIENT),
            (400, ErrorKind.FATAL),
            (401, ErrorKind.FATAL),
            (418, ErrorKind.UNKNOWN),
        ],
    )
    def test_status_code_fallback(self, status, kind):
        assert classify("openai", LLMError("failed", status_code=status)).kind == kind

    def test_anthropic_overloaded_is_transient(self):
        error = OverloadedError("Overloaded", body={"error": {"type": "overloaded_error"}})
        assert classify("anthropic", error).kind == ErrorKind.TRANSIENT

    def test_anthropic_529_is_transient(self):
        assert classify("anthropic", LLMError("Overloaded", status_code=529)).kind == ErrorKind.TRANSIENT

    def test_gemini_resource_exhausted_is_rate_limited(self):
        error = LLMError("quota", code="RESOURCE_EXHAUSTED")
        assert classify("gemini", error).kind == ErrorKind.RATE_LIMITED

    def test_gemini_malformed_function_call_is_transient(self):
        error = LLMError("finish reason MALFORMED_FUNCTION_CALL", status_code=400)
        assert classify("gemini", error).kind == ErrorKind.TRANSIENT

    def test_provider_rules_do_not_leak_to_other_providers(self):
        error = LLMError("quota", code="RESOURCE_EXHAUSTED")
        assert classify("openai", error).kind == ErrorKind.UNKNOWN

    def test_registered_rule_runs_before_generic_rules(self, monkeypatch):
        monkeypatch.setattr(classification, "_PROVIDER_RULES", dict(classification._PROVIDER_RULES))
        register_classification_rule("acme", lambda error: ErrorKind.TRANSIENT if "flaky" in str(error) else None)

        assert classify("acme", LLMError("flaky backend", status_code=400)).kind == ErrorKind.TRANSIENT
        assert classify("acme", LLMError("bad input", status_code=400)).kind == ErrorKind.FATAL

    def test_original_error_is_kept_but_not_compared(self):
        error = ServerError("boom")
        first = classify("openai", error)
        second = classify("openai", ServerError("boom"))
        assert first.original is error
        assert first == second


class TestExtractRetryAfter:
    """Server retry directives."""

    def test_delta_seconds_header(self):
        error = RateLimitError(headers={"Retry-After": "2"})
        assert extract_retry_after(error) == 2.0

    def test_header_is_capped(self):
        error = RateLimitError(headers={"retry-after": "9000"})
        assert extract_retry_after(error) == 300.0

    def test_http_date_header(self):
        now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        error = RateLimitError(headers={"retry-after": "Mon, 01 Jan 2024 12:00:07 GMT"})
        assert extract_retry_after(error, now=now) == 7.0

    def test_http_date_in_the_past_is_zero(self):
        now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        error = RateLimitError(headers={"retry-after": "Mon, 01 Jan 2024 11:00:00 GMT"})
        assert extract_retry_after(error, now=now) == 0.0

    def test_httpx_response_headers(self):
        request = httpx.Request("POST", "https://api.example.com/v1/messages")
        response = httpx.Response(429, headers={"retry-after": "3"}, request=request)
        error = httpx.HTTPStatusError("too many", request=request, response=response)
        classified = classify("openai", error)
        assert classified.kind == ErrorKind.RATE_LIMITED
        assert classified.retry_after_seconds == 3.0

    def test_retry_after_attribute(self):
        assert extract_retry_after(RateLimitError(retry_after=4)) == 4.0

    def test_garbage_header_is_ignored(self):
        assert extract_retry_after(RateLimitError(headers={"retry-after": "soon"})) is None

    def test_no_directive(self):
        assert extract_retry_after(ServerError("boom")) is None


class TestUserMessages:
    """User-facing wording and suggested actions."""

    def test_auth_failure_points_at_configuration(self):
        classified = classify("anthropic", AuthenticationError(provider="anthropic"))
        assert build_user_message(classified, "claude-sonnet") == (
            "Anthropic API key is invalid. Check AI agent configuration in admin settings."
        )
        assert suggest_action(classified) == SuggestedAction.CHECK_CONFIG

    def test_rate_limited_while_retrying_mentions_delay(self):
        classified = classify("openai", RateLimitError(retry_after=2))
        assert build_user_message(classified, "gpt-4o", retrying=True) == (
            "gpt-4o is rate limited. Retrying in 2s..."
        )
        assert suggest_action(classified) == SuggestedAction.RETRY

    def test_unknown_failure_suggests_retry(self):
        classified = classify("openai", RuntimeError("odd"))
        assert build_user_message(classified, "gpt-4o") == "Something went wrong. Please try again."
        assert suggest_action(classified) == SuggestedAction.RETRY
