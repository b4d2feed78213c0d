"""Configuration models for surface-id-agent.

Pydantic models for the realized configuration feed: rule records, the
default pool policy and the key-value store address. The raw JSON sections
mirror the agent's config file; DefaultPolicy and StoreSettings are the
resolved forms the engine consumes.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..constants import (
    INVALID_SURFACE_ID,
    STORE_CONNECT_ATTEMPTS,
    STORE_CONNECT_DELAY,
    STORE_DEFAULT_HOST,
    STORE_DEFAULT_PORT,
    STORE_DISABLED_VALUE,
)

logger = logging.getLogger(__name__)


class DesktopAppRule(BaseModel):
    """One rule record from the ``desktop_apps`` list.

    surface_id is optional here so a missing id can be reported as a
    configuration error by the rule store rather than a parse failure.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    surface_id: Optional[int] = Field(default=None, ge=0, lt=INVALID_SURFACE_ID)
    app_id: Optional[str] = None
    app_title: Optional[str] = None


class DefaultPolicy(BaseModel):
    """Resolved default pool policy: ids in [default_surface_id, default_surface_id_max)."""

    model_config = {"frozen": True}

    enabled: bool = False
    default_surface_id: int = Field(default=INVALID_SURFACE_ID, ge=0)
    default_surface_id_max: int = Field(default=INVALID_SURFACE_ID, ge=0)

    def in_range(self, surface_id: int) -> bool:
        if not self.enabled:
            return False
        return self.default_surface_id <= surface_id < self.default_surface_id_max


class DesktopAppDefaultSection(BaseModel):
    """Raw ``desktop_app_default`` section; its presence enables the policy."""

    default_surface_id: Optional[int] = Field(default=None, ge=0, lt=INVALID_SURFACE_ID)
    default_surface_id_max: Optional[int] = Field(default=None, ge=0, le=INVALID_SURFACE_ID)

    def resolve(self) -> DefaultPolicy:
        """Resolve to a DefaultPolicy, disabling it when a bound is missing."""
        if self.default_surface_id is None or self.default_surface_id_max is None:
            logger.warning("Missing configuration for default behavior, disabling it")
            return DefaultPolicy(enabled=False)

        if self.default_surface_id >= self.default_surface_id_max:
            logger.warning(
                f"Default id interval [{self.default_surface_id}, "
                f"{self.default_surface_id_max}) is empty"
            )

        return DefaultPolicy(
            enabled=True,
            default_surface_id=self.default_surface_id,
            default_surface_id_max=self.default_surface_id_max,
        )


class StoreSettings(BaseModel):
    """Resolved key-value store address and startup retry budget."""

    model_config = {"frozen": True}

    enabled: bool = True
    host: Optional[str] = STORE_DEFAULT_HOST
    port: int = Field(default=STORE_DEFAULT_PORT, gt=0, le=65535)
    retry_attempts: int = Field(default=STORE_CONNECT_ATTEMPTS, ge=1)
    retry_delay: float = Field(default=STORE_CONNECT_DELAY, ge=0)


class RedisServerSection(BaseModel):
    """Raw ``redis_server`` section."""

    server: Optional[str] = None
    port: int = Field(default=STORE_DEFAULT_PORT, gt=0, le=65535)
    retry_attempts: int = Field(default=STORE_CONNECT_ATTEMPTS, ge=1)
    retry_delay: float = Field(default=STORE_CONNECT_DELAY, ge=0)

    @field_validator("server")
    @classmethod
    def normalize_server(cls, v: Optional[str]) -> Optional[str]:
        """Map empty and "off" to None (store disabled)."""
        if v is None:
            return None
        v = v.strip()
        if not v or v == STORE_DISABLED_VALUE:
            return None
        return v

    def resolve(self) -> StoreSettings:
        if self.server is None:
            return StoreSettings(enabled=False, host=None, port=self.port)
        return StoreSettings(
            enabled=True,
            host=self.server,
            port=self.port,
            retry_attempts=self.retry_attempts,
            retry_delay=self.retry_delay,
        )


class AgentConfig(BaseModel):
    """Complete agent configuration as read from config.json."""

    desktop_apps: List[DesktopAppRule] = Field(default_factory=list)
    desktop_app_default: Optional[DesktopAppDefaultSection] = None
    redis_server: Optional[RedisServerSection] = None

    @property
    def default_policy(self) -> DefaultPolicy:
        if self.desktop_app_default is None:
            return DefaultPolicy(enabled=False)
        return self.desktop_app_default.resolve()

    @property
    def store_settings(self) -> StoreSettings:
        # No section at all: talk to the local default server
        if self.redis_server is None:
            return StoreSettings()
        return self.redis_server.resolve()
