"""AgentConfig loading logic.

Provides ``_AgentConfigLoader``, a mixin whose methods are inherited by
``AgentConfig`` (defined in ``agent.py``). Keeping loading separate keeps
``agent.py`` focused on fields and factory methods.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, cast

if TYPE_CHECKING:
    from lifecycle_agent.config.agent import AgentConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from lifecycle_agent.config.domains import (
    ResilienceConfig,
    TokenBudgetConfig,
    ToolSafetyConfig,
    loop_config_from_toml_dict,
)
from lifecycle_agent.config.parsing import _parse_float, _parse_int, _try_parse_bool
from lifecycle_agent.core.errors import ConfigError
from lifecycle_agent.core.orchestration import LoopProtectionConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "LIFECYCLE_AGENT_"
_TOKEN_LIMIT_ENV_PREFIX = f"{ENV_PREFIX}TOKEN_LIMIT_"
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env(name: str) -> Optional[str]:
    value = os.environ.get(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


class _AgentConfigLoader:
    """Mixin providing config-loading methods for ``AgentConfig``."""

    if TYPE_CHECKING:
        log_level: str
        structured_logging: bool
        debug: bool
        loop: LoopProtectionConfig
        resilience: ResilienceConfig
        tokens: TokenBudgetConfig
        tools: ToolSafetyConfig

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "AgentConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables (LIFECYCLE_AGENT_*)
        2. Project TOML config (./lifecycle-agent.toml)
        3. User TOML config (~/.lifecycle-agent.toml)
        4. XDG config (~/.config/lifecycle-agent/config.toml)
        5. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
            for candidate in (
                Path(xdg_config_home) / "lifecycle-agent" / "config.toml",
                Path.home() / ".lifecycle-agent.toml",
                Path("lifecycle-agent.toml"),
            ):
                if candidate.exists():
                    config._load_toml(candidate)
                    logger.debug(f"Loaded config from {candidate}")

        config._load_env()
        return cast("AgentConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

        self._apply_toml(data)

    def _apply_toml(self, data: Dict[str, Any]) -> None:
        if "logging" in data:
            section = data["logging"]
            if "level" in section:
                self.log_level = self._normalize_log_level(str(section["level"]))
            if "structured" in section:
                parsed = _try_parse_bool(section["structured"])
                if parsed is not None:
                    self.structured_logging = parsed

        if "agent" in data and "debug" in data["agent"]:
            parsed = _try_parse_bool(data["agent"]["debug"])
            if parsed is not None:
                self.debug = parsed

        if "loop" in data:
            self.loop = loop_config_from_toml_dict(self.loop, data["loop"])
        if "resilience" in data:
            self.resilience = ResilienceConfig.from_toml_dict(data["resilience"], self.resilience)
        if "tokens" in data:
            self.tokens = TokenBudgetConfig.from_toml_dict(data["tokens"], self.tokens)
        if "tools" in data:
            self.tools = ToolSafetyConfig.from_toml_dict(data["tools"], self.tools)

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if level := _env("LOG_LEVEL"):
            self.log_level = self._normalize_log_level(level)
        if structured := _env("STRUCTURED_LOGGING"):
            parsed = _try_parse_bool(structured)
            if parsed is not None:
                self.structured_logging = parsed
        if debug := _env("DEBUG"):
            parsed = _try_parse_bool(debug)
            if parsed is not None:
                self.debug = parsed

        loop_updates = {}
        for field_name in ("max_iterations", "max_tool_calls", "max_repeated_calls"):
            if raw := _env(field_name.upper()):
                loop_updates[field_name] = _parse_int(raw, f"{ENV_PREFIX}{field_name.upper()}", 1)
        if loop_updates:
            self.loop = replace(self.loop, **loop_updates)

        res = self.resilience
        if raw := _env("MAX_ATTEMPTS"):
            res.max_attempts = _parse_int(raw, f"{ENV_PREFIX}MAX_ATTEMPTS", 1)
        if raw := _env("BASE_DELAY"):
            res.base_delay = _parse_float(raw, f"{ENV_PREFIX}BASE_DELAY", 0.0)
        if raw := _env("MAX_DELAY"):
            res.max_delay = _parse_float(raw, f"{ENV_PREFIX}MAX_DELAY", 0.0)
        if raw := _env("RETRY_BUDGET"):
            res.retry_budget = _parse_int(raw, f"{ENV_PREFIX}RETRY_BUDGET", 0)
        if raw := _env("FAILURE_THRESHOLD"):
            res.failure_threshold = _parse_int(raw, f"{ENV_PREFIX}FAILURE_THRESHOLD", 1)
        if raw := _env("RECOVERY_TIMEOUT"):
            res.recovery_timeout = _parse_float(raw, f"{ENV_PREFIX}RECOVERY_TIMEOUT", 0.0)

        tok = self.tokens
        for key, value in os.environ.items():
            if key.startswith(_TOKEN_LIMIT_ENV_PREFIX) and value.strip():
                provider = key[len(_TOKEN_LIMIT_ENV_PREFIX) :].lower()
                tok.limits[provider] = _parse_int(value, key, 1)
        if raw := _env("MASKING_RECENCY_WINDOW"):
            tok.masking_recency_window = _parse_int(raw, f"{ENV_PREFIX}MASKING_RECENCY_WINDOW", 1)
        if raw := _env("MASKING_TOKEN_THRESHOLD"):
            tok.masking_token_threshold = _parse_int(raw, f"{ENV_PREFIX}MASKING_TOKEN_THRESHOLD", 0)
        if raw := _env("COMPRESSION_THRESHOLD"):
            tok.compression_threshold = _parse_int(raw, f"{ENV_PREFIX}COMPRESSION_THRESHOLD", 1)
        if raw := _env("HISTORY_LIMIT"):
            tok.history_limit = _parse_int(raw, f"{ENV_PREFIX}HISTORY_LIMIT", 0)

        tools = self.tools
        if raw := _env("REQUIRE_CONFIRMATION"):
            parsed = _try_parse_bool(raw)
            if parsed is not None:
                tools.require_confirmation = parsed
        if raw := _env("TOOL_TIMEOUT"):
            tools.execution_timeout = _parse_float(raw, f"{ENV_PREFIX}TOOL_TIMEOUT", 0.1)
        if raw := _env("MAX_OUTPUT_CHARS"):
            tools.max_output_chars = _parse_int(raw, f"{ENV_PREFIX}MAX_OUTPUT_CHARS", 500)

    @staticmethod
    def _normalize_log_level(value: str) -> str:
        level = value.strip().upper()
        if level not in _VALID_LOG_LEVELS:
            logger.warning("Invalid log level '%s'. Falling back to INFO.", value)
            return "INFO"
        return level
