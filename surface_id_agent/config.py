"""Configuration loader for surface-id-agent.

Reads the agent's JSON config file once at startup and turns it into the
validated rule store, the default pool policy and the store settings.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .constants import ConfigPaths
from .errors import ConfigError
from .models.config import AgentConfig, DefaultPolicy, StoreSettings
from .rule_store import RuleStore, load_rule_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineConfig:
    """Everything the engine needs, realized once at startup."""

    rule_store: RuleStore
    default_policy: DefaultPolicy
    store_settings: StoreSettings


def parse_agent_config(data: Dict[str, Any]) -> AgentConfig:
    """Validate raw configuration data.

    Raises:
        ConfigError: If the data does not fit the configuration schema
    """
    try:
        return AgentConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_agent_config(config_file: Path) -> AgentConfig:
    """Load and schema-check the agent configuration file.

    Args:
        config_file: Path to config.json

    Returns:
        AgentConfig with raw sections

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    if not config_file.exists():
        raise ConfigError(f"Configuration file does not exist: {config_file}")

    try:
        with open(config_file) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read configuration from {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be an object: {config_file}")

    config = parse_agent_config(data)
    logger.info(
        f"Loaded configuration from {config_file}: "
        f"{len(config.desktop_apps)} desktop app rule(s)"
    )
    return config


def build_engine_config(config: AgentConfig) -> EngineConfig:
    """Resolve the policy and store settings and validate the rules.

    Raises:
        ConfigError: If the rules are inconsistent or nothing is configured
    """
    default_policy = config.default_policy
    if default_policy.enabled:
        logger.info(
            f"Default behavior for unknown applications is set: ids "
            f"[{default_policy.default_surface_id}, {default_policy.default_surface_id_max})"
        )

    rule_store = load_rule_store(config.desktop_apps, default_policy)

    store_settings = config.store_settings
    if not store_settings.enabled:
        logger.info("Key-value store sync is disabled in configuration")

    return EngineConfig(
        rule_store=rule_store,
        default_policy=default_policy,
        store_settings=store_settings,
    )


def load_engine_config(config_file: Optional[Path] = None) -> EngineConfig:
    """Load, validate and realize the configuration in one step."""
    path = config_file or ConfigPaths.resolve_config_file()
    return build_engine_config(load_agent_config(path))
