"""Configuration inspection commands."""

import click

from lifecycle_agent.cli.output import emit_success
from lifecycle_agent.config import AgentConfig


@click.group("config")
def config_group() -> None:
    """Effective configuration commands."""
    pass


@config_group.command("show")
@click.pass_obj
def show_cmd(config: AgentConfig) -> None:
    """Show the configuration after TOML files and environment overrides.

    Examples:
        lifecycle-agent config show
        LIFECYCLE_AGENT_MAX_ITERATIONS=5 lifecycle-agent config show
    """
    emit_success(config.to_dict())
