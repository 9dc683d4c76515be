"""lifecycle-agent CLI entry point."""

from pathlib import Path
from typing import Optional

import click

from lifecycle_agent import __version__
from lifecycle_agent.cli.commands import config_group, errors_group, tokens_group
from lifecycle_agent.cli.output import emit_error
from lifecycle_agent.config import AgentConfig
from lifecycle_agent.core.errors import ConfigError


@click.group()
@click.version_option(__version__, prog_name="lifecycle-agent")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="TOML config file (default: XDG, home, then project config)",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[Path]) -> None:
    """Inspect the agent engine's configuration, token budgets, and provider errors."""
    try:
        config = AgentConfig.from_env(str(config_file) if config_file else None)
    except ConfigError as exc:
        emit_error(
            str(exc),
            code="INVALID_CONFIG",
            error_type="validation",
            remediation="Fix the config file or LIFECYCLE_AGENT_* environment variables",
        )
    ctx.obj = config


cli.add_command(config_group)
cli.add_command(errors_group)
cli.add_command(tokens_group)


if __name__ == "__main__":
    cli()
