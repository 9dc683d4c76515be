"""CLI command groups."""

from lifecycle_agent.cli.commands.config import config_group
from lifecycle_agent.cli.commands.errors import errors_group
from lifecycle_agent.cli.commands.tokens import tokens_group

__all__ = [
    "config_group",
    "errors_group",
    "tokens_group",
]
