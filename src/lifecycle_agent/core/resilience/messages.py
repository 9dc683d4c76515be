"""User-facing wording and suggested actions for classified failures."""

import math
from typing import Optional

from lifecycle_agent.core.resilience.models import ClassifiedError, ErrorKind, SuggestedAction

_PROVIDER_DISPLAY_NAMES = {
    "anthropic": "Anthropic",
    "openai": "OpenAI",
    "gemini": "Google Gemini",
}


def provider_display_name(provider_name: Optional[str]) -> str:
    if not provider_name:
        return "Provider"
    return _PROVIDER_DISPLAY_NAMES.get(provider_name, provider_name)


def build_user_message(
    classified: ClassifiedError,
    model_name: str,
    retrying: bool = False,
) -> str:
    """Short sentence shown to the user for a failed provider call."""
    if classified.kind == ErrorKind.RATE_LIMITED:
        if retrying and classified.retry_after_seconds:
            return f"{model_name} is rate limited. Retrying in {classified.retry_after_seconds:g}s..."
        return f"{model_name} is rate limited. Please wait and try again."

    if classified.kind == ErrorKind.TRANSIENT:
        if retrying:
            return f"{model_name} is temporarily unavailable. Retrying..."
        return f"{model_name} is temporarily unavailable. Please try again shortly."

    if classified.kind == ErrorKind.FATAL:
        if classified.is_auth:
            return (
                f"{provider_display_name(classified.provider_name)} API key is invalid. "
                "Check AI agent configuration in admin settings."
            )
        return "Request failed. Please try a different approach."

    return "Something went wrong. Please try again."


def suggest_action(classified: ClassifiedError) -> SuggestedAction:
    """Fatal failures point at configuration; everything else can be retried."""
    if classified.kind == ErrorKind.FATAL:
        return SuggestedAction.CHECK_CONFIG
    return SuggestedAction.RETRY


def breaker_open_message(model_name: str, retry_after: Optional[float] = None) -> str:
    if retry_after:
        return (
            f"{model_name} is failing repeatedly and has been paused for "
            f"{math.ceil(retry_after)}s. Try another model or retry later."
        )
    return f"{model_name} is failing repeatedly and has been paused. Try another model or retry later."
