"""Centralized paths and protocol constants for surface-id-agent.

Single source of truth for the config location, the key-value store layout
and the host mark format.
"""

import os
from pathlib import Path
from typing import Final


class ConfigPaths:
    """Centralized configuration paths.

    Example:
        from .constants import ConfigPaths

        config = load_agent_config(ConfigPaths.CONFIG_FILE)
    """

    HOME: Final[Path] = Path.home()
    CONFIG_DIR: Final[Path] = HOME / ".config" / "surface-id-agent"
    CONFIG_FILE: Final[Path] = CONFIG_DIR / "config.json"

    # Environment override for CONFIG_FILE
    CONFIG_ENV_VAR: Final[str] = "SURFACE_ID_AGENT_CONFIG"

    @classmethod
    def resolve_config_file(cls) -> Path:
        """Return the config file path, honouring the environment override."""
        override = os.environ.get(cls.CONFIG_ENV_VAR)
        if override:
            return Path(override).expanduser()
        return cls.CONFIG_FILE


# Host side: 0xFFFFFFFF means "surface has no id"
INVALID_SURFACE_ID: Final[int] = 0xFFFFFFFF

# Key-value store layout
STORE_DEFAULT_HOST: Final[str] = "127.0.0.1"
STORE_DEFAULT_PORT: Final[int] = 6379
STORE_DISABLED_VALUE: Final[str] = "off"
STORE_REVERSE_KEY_PREFIX: Final[str] = "SURID-"
STORE_CONNECT_ATTEMPTS: Final[int] = 10
STORE_CONNECT_DELAY: Final[float] = 1.0  # seconds between attempts
STORE_SOCKET_TIMEOUT: Final[float] = 2.0

# Sway/i3 mark carrying a surface id, e.g. "surface_id:1000"
SURFACE_ID_MARK_PREFIX: Final[str] = "surface_id:"

# Compositor IPC
IPC_CONNECT_ATTEMPTS: Final[int] = 10


def reverse_key(surface_id: int) -> str:
    """Store key holding the app id bound to ``surface_id``."""
    return f"{STORE_REVERSE_KEY_PREFIX}{surface_id}"


def surface_id_mark(surface_id: int) -> str:
    return f"{SURFACE_ID_MARK_PREFIX}{surface_id}"
