"""Configuration for lifecycle-agent.

Usage:
    from lifecycle_agent.config import get_config

    config = get_config()
    orchestrator = config.build_orchestrator(tools)
"""

from lifecycle_agent.config.agent import AgentConfig, get_config, set_config
from lifecycle_agent.config.domains import ResilienceConfig, TokenBudgetConfig, ToolSafetyConfig
from lifecycle_agent.config.loader import ENV_PREFIX

__all__ = [
    "AgentConfig",
    "ResilienceConfig",
    "TokenBudgetConfig",
    "ToolSafetyConfig",
    "ENV_PREFIX",
    "get_config",
    "set_config",
]
