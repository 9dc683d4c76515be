"""Token counting and budget commands.

Prompt text is read from a file argument, or from stdin when the argument
is ``-``.
"""

from typing import Optional

import click

from lifecycle_agent.cli.output import emit_error, emit_success
from lifecycle_agent.config import AgentConfig
from lifecycle_agent.core.errors import UnknownProviderError
from lifecycle_agent.core.tokens import count_tokens


@click.group("tokens")
def tokens_group() -> None:
    """Prompt token accounting commands."""
    pass


@tokens_group.command("count")
@click.argument("prompt", type=click.File("r"))
def count_cmd(prompt) -> None:
    """Count the cl100k_base tokens in PROMPT.

    Examples:
        lifecycle-agent tokens count system_prompt.txt
        cat system_prompt.txt | lifecycle-agent tokens count -
    """
    text = prompt.read()
    emit_success({"characters": len(text), "tokens": count_tokens(text)})


@tokens_group.command("breakdown")
@click.argument("prompt", type=click.File("r"))
@click.option("--table", is_flag=True, help="Render a table instead of JSON.")
@click.pass_obj
def breakdown_cmd(config: AgentConfig, prompt, table: bool) -> None:
    """Attribute PROMPT's tokens to the registered prompt sections.

    Tokens not explained by the sections are split between provider
    augmentation and environment context.
    """
    breakdown = config.build_token_tracker().get_token_breakdown(prompt.read())

    if not table:
        emit_success(breakdown.to_dict())
        return

    from rich.console import Console
    from rich.table import Table

    grid = Table(title="Prompt token breakdown")
    grid.add_column("Bucket")
    grid.add_column("Tokens", justify="right")
    for section_id, tokens in breakdown.sections.items():
        grid.add_row(section_id, str(tokens))
    grid.add_row("provider augmentation", str(breakdown.provider_augmentation), style="dim")
    grid.add_row("environment context", str(breakdown.environment_context), style="dim")
    grid.add_row("total", str(breakdown.total), style="bold")
    Console().print(grid)


@tokens_group.command("budget")
@click.argument("prompt", type=click.File("r"), required=False)
@click.option("--provider", required=True, help="Provider whose context limit applies.")
@click.option("--count", "token_count", type=int, help="Use a precomputed token count instead of PROMPT.")
@click.pass_obj
def budget_cmd(config: AgentConfig, prompt, provider: str, token_count: Optional[int]) -> None:
    """Compare PROMPT (or --count) against a provider's context window.

    Exits non-zero when the prompt is over budget.

    Examples:
        lifecycle-agent tokens budget system_prompt.txt --provider anthropic
        lifecycle-agent tokens budget --provider openai --count 200000
    """
    if prompt is None and token_count is None:
        emit_error(
            "Either PROMPT or --count is required",
            code="VALIDATION_ERROR",
            error_type="validation",
        )

    tracker = config.build_token_tracker()
    try:
        budget = tracker.check_budget(prompt.read() if prompt else "", provider, token_count)
    except UnknownProviderError as exc:
        emit_error(
            str(exc),
            code="UNKNOWN_PROVIDER",
            error_type="not_found",
            remediation=f"Known providers: {', '.join(sorted(tracker.limits))}",
        )

    if budget.over_budget:
        emit_error(
            f"Prompt uses {budget.used} tokens; {provider} allows {budget.limit}",
            code="TOKEN_BUDGET_EXCEEDED",
            error_type="budget",
            details=budget.to_dict(),
        )
    emit_success(budget.to_dict())
