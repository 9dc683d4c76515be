"""AgentConfig dataclass and global configuration state.

This module defines the ``AgentConfig`` class (field declarations and
factory methods wiring the engine) and the global ``get_config`` /
``set_config`` helpers. Loading logic lives in the ``_AgentConfigLoader``
mixin (``loader.py``).
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from lifecycle_agent.config.domains import ResilienceConfig, TokenBudgetConfig, ToolSafetyConfig
from lifecycle_agent.config.loader import _AgentConfigLoader
from lifecycle_agent.core.orchestration import (
    AgentService,
    ConversationManager,
    ConversationStore,
    LoopProtectionConfig,
    OutputLimiter,
    ToolOrchestrator,
    ToolRegistry,
    ToolSafetyManager,
)
from lifecycle_agent.core.resilience import (
    CircuitBreakerRegistry,
    RetryBudget,
    RetryPolicy,
    get_breaker_registry,
)
from lifecycle_agent.core.tokens import TokenBudgetTracker


@dataclass
class AgentConfig(_AgentConfigLoader):
    """Engine configuration with support for env vars and TOML overrides."""

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = True

    # Emit debug_* events
    debug: bool = False

    loop: LoopProtectionConfig = field(default_factory=LoopProtectionConfig)
    resilience: ResilienceConfig = field(default_factory=ResilienceConfig)
    tokens: TokenBudgetConfig = field(default_factory=TokenBudgetConfig)
    tools: ToolSafetyConfig = field(default_factory=ToolSafetyConfig)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            # JSON-style structured logging
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        root_logger = logging.getLogger("lifecycle_agent")
        root_logger.setLevel(level)
        root_logger.addHandler(handler)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def build_breaker_registry(self) -> CircuitBreakerRegistry:
        return CircuitBreakerRegistry(
            failure_threshold=self.resilience.failure_threshold,
            recovery_timeout=self.resilience.recovery_timeout,
        )

    def build_retry_policy(self, registry: Optional[CircuitBreakerRegistry] = None) -> RetryPolicy:
        return RetryPolicy(
            registry or get_breaker_registry(),
            max_attempts=self.resilience.max_attempts,
            base_delay=self.resilience.base_delay,
            multiplier=self.resilience.multiplier,
            max_delay=self.resilience.max_delay,
        )

    def build_retry_budget(self) -> RetryBudget:
        return RetryBudget(self.resilience.retry_budget)

    def build_token_tracker(self) -> TokenBudgetTracker:
        return TokenBudgetTracker(limits=self.tokens.limits)

    def build_safety_manager(self) -> ToolSafetyManager:
        return ToolSafetyManager(
            require_confirmation=self.tools.require_confirmation,
            execution_timeout=self.tools.execution_timeout,
            output_limiter=OutputLimiter(self.tools.max_output_chars),
        )

    def build_orchestrator(
        self,
        tools: ToolRegistry,
        registry: Optional[CircuitBreakerRegistry] = None,
    ) -> ToolOrchestrator:
        return ToolOrchestrator(
            tools,
            loop_config=self.loop,
            retry_policy=self.build_retry_policy(registry),
            token_tracker=self.build_token_tracker(),
            safety_manager=self.build_safety_manager(),
            max_retries=self.resilience.retry_budget,
            debug=self.debug,
        )

    def build_service(
        self,
        tools: ToolRegistry,
        store: ConversationStore,
        registry: Optional[CircuitBreakerRegistry] = None,
    ) -> AgentService:
        return AgentService(
            self.build_orchestrator(tools, registry),
            store,
            history_limit=self.tokens.history_limit,
            masking_recency_window=self.tokens.masking_recency_window,
            masking_token_threshold=self.tokens.masking_token_threshold,
            conversation_manager=ConversationManager(self.tokens.compression_threshold),
        )


# Global configuration instance
_config: Optional[AgentConfig] = None


def get_config() -> AgentConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AgentConfig.from_env()
    return _config


def set_config(config: Optional[AgentConfig]) -> None:
    """Set (or clear) the global configuration instance."""
    global _config
    _config = config
