"""Domain-specific configuration dataclasses.

Small, focused configuration classes for the engine's concerns: provider
resilience, token budgeting, and tool safety. Loop ceilings use
:class:`~lifecycle_agent.core.orchestration.LoopProtectionConfig` directly.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from lifecycle_agent.config.parsing import _parse_bool, _parse_float, _parse_int
from lifecycle_agent.core.orchestration import LoopProtectionConfig


def loop_config_from_toml_dict(base: LoopProtectionConfig, data: Dict[str, Any]) -> LoopProtectionConfig:
    """Apply a TOML ``[loop]`` section over ``base``."""
    updates = {
        key: _parse_int(data[key], f"loop.{key}", minimum=1)
        for key in ("max_iterations", "max_tool_calls", "max_repeated_calls")
        if key in data
    }
    return replace(base, **updates) if updates else base


@dataclass
class ResilienceConfig:
    """Retry policy and circuit breaker settings.

    Attributes:
        max_attempts: Attempts per provider call
        base_delay: First backoff delay in seconds
        multiplier: Backoff growth factor
        max_delay: Backoff ceiling in seconds
        retry_budget: Retries allowed across one agent run
        failure_threshold: Consecutive retryable failures that open a breaker
        recovery_timeout: Seconds a breaker stays open before a trial call
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 10.0
    retry_budget: int = 10
    failure_threshold: int = 5
    recovery_timeout: float = 30.0

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any], base: Optional["ResilienceConfig"] = None) -> "ResilienceConfig":
        """Create config from a TOML ``[resilience]`` section, layered over ``base``."""
        defaults = base or cls()
        return cls(
            max_attempts=_parse_int(data.get("max_attempts", defaults.max_attempts), "resilience.max_attempts", 1),
            base_delay=_parse_float(data.get("base_delay", defaults.base_delay), "resilience.base_delay", 0.0),
            multiplier=_parse_float(data.get("multiplier", defaults.multiplier), "resilience.multiplier", 1.0),
            max_delay=_parse_float(data.get("max_delay", defaults.max_delay), "resilience.max_delay", 0.0),
            retry_budget=_parse_int(data.get("retry_budget", defaults.retry_budget), "resilience.retry_budget", 0),
            failure_threshold=_parse_int(
                data.get("failure_threshold", defaults.failure_threshold), "resilience.failure_threshold", 1
            ),
            recovery_timeout=_parse_float(
                data.get("recovery_timeout", defaults.recovery_timeout), "resilience.recovery_timeout", 0.0
            ),
        )


@dataclass
class TokenBudgetConfig:
    """Context-window limits and observation masking.

    Attributes:
        limits: Per-provider overrides merged over the built-in limits
        masking_recency_window: Tool-result turns never masked
        masking_token_threshold: Conversation size at which masking starts
        compression_threshold: Conversation size, after masking, at which the
            history is summarized
        history_limit: Stored messages replayed as context
    """

    limits: Dict[str, int] = field(default_factory=dict)
    masking_recency_window: int = 3
    masking_token_threshold: int = 25_000
    compression_threshold: int = 80_000
    history_limit: int = 50

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any], base: Optional["TokenBudgetConfig"] = None) -> "TokenBudgetConfig":
        """Create config from a TOML ``[tokens]`` section, layered over ``base``."""
        defaults = base or cls()
        limits = dict(defaults.limits)
        for provider, value in (data.get("limits") or {}).items():
            limits[str(provider)] = _parse_int(value, f"tokens.limits.{provider}", 1)
        return cls(
            limits=limits,
            masking_recency_window=_parse_int(
                data.get("masking_recency_window", defaults.masking_recency_window),
                "tokens.masking_recency_window",
                1,
            ),
            masking_token_threshold=_parse_int(
                data.get("masking_token_threshold", defaults.masking_token_threshold),
                "tokens.masking_token_threshold",
                0,
            ),
            compression_threshold=_parse_int(
                data.get("compression_threshold", defaults.compression_threshold),
                "tokens.compression_threshold",
                1,
            ),
            history_limit=_parse_int(data.get("history_limit", defaults.history_limit), "tokens.history_limit", 0),
        )


@dataclass
class ToolSafetyConfig:
    """Tool execution guard settings."""

    require_confirmation: bool = True
    execution_timeout: float = 30.0
    max_output_chars: int = 30_000

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any], base: Optional["ToolSafetyConfig"] = None) -> "ToolSafetyConfig":
        """Create config from a TOML ``[tools]`` section, layered over ``base``."""
        defaults = base or cls()
        return cls(
            require_confirmation=_parse_bool(data.get("require_confirmation", defaults.require_confirmation)),
            execution_timeout=_parse_float(
                data.get("execution_timeout", defaults.execution_timeout), "tools.execution_timeout", 0.1
            ),
            max_output_chars=_parse_int(
                data.get("max_output_chars", defaults.max_output_chars), "tools.max_output_chars", 500
            ),
        )
