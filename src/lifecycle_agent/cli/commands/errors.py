"""Provider error classification commands.

Useful for checking how a given provider response would be treated by the
retry policy without making a provider call.
"""

from typing import Optional

import click

from lifecycle_agent.cli.output import emit_success
from lifecycle_agent.core.errors import LLMError
from lifecycle_agent.core.resilience import (
    build_user_message,
    classify,
    provider_display_name,
    suggest_action,
)


@click.group("errors")
def errors_group() -> None:
    """Provider error handling commands."""
    pass


@errors_group.command("classify")
@click.option("--provider", required=True, help="Provider name, e.g. anthropic or gemini.")
@click.option("--status", "status_code", type=int, help="HTTP status of the failed response.")
@click.option("--code", "vendor_code", help="Vendor error code, e.g. RESOURCE_EXHAUSTED.")
@click.option("--retry-after", help="Retry-After header value (seconds or HTTP date).")
@click.option("--message", default="Provider request failed", show_default=True)
def classify_cmd(
    provider: str,
    status_code: Optional[int],
    vendor_code: Optional[str],
    retry_after: Optional[str],
    message: str,
) -> None:
    """Classify a provider failure and show the resulting user-facing error.

    Examples:
        lifecycle-agent errors classify --provider anthropic --status 529
        lifecycle-agent errors classify --provider openai --status 429 --retry-after 2
    """
    headers = {"retry-after": retry_after} if retry_after else None
    error = LLMError(message, provider=provider, status_code=status_code, headers=headers, code=vendor_code)
    classified = classify(provider, error)
    model_name = provider_display_name(provider)

    emit_success(
        {
            "provider": provider,
            "kind": classified.kind.value,
            "category": classified.category.value,
            "retryable": classified.retryable,
            "retry_after_seconds": classified.retry_after_seconds,
            "is_auth": classified.is_auth,
            "suggested_action": suggest_action(classified).value,
            "user_message": build_user_message(classified, model_name),
        }
    )
