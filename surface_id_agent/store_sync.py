"""Best-effort mirror of surface id assignments into a key-value store.

Layout:
    <app_id>             -> <surface_id>   (forward mapping)
    SURID-<surface_id>   -> <app_id>       (reverse mapping)

The store is a cache for other processes, never a source of truth. The
client retries the initial connection a bounded number of times, then
degrades to a permanent no-op. Errors during register/unregister are
logged and swallowed; a connectivity error also drops the client to the
no-op state for the rest of the process lifetime.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .constants import STORE_SOCKET_TIMEOUT, reverse_key
from .models.config import StoreSettings

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, int], Any]


class StoreConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def default_client_factory(host: str, port: int) -> redis.Redis:
    """Create a redis.asyncio client speaking SET/GET/DEL with str replies."""
    return redis.Redis(
        host=host,
        port=port,
        decode_responses=True,
        socket_timeout=STORE_SOCKET_TIMEOUT,
        socket_connect_timeout=STORE_SOCKET_TIMEOUT,
    )


class StoreSyncClient:
    """Store Sync Client: connect once, then register/unregister best-effort."""

    def __init__(
        self,
        settings: StoreSettings,
        client_factory: Optional[ClientFactory] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the client (no I/O happens until connect()).

        Args:
            settings: Store address and startup retry budget
            client_factory: Builds the async store client from (host, port)
            sleep: Awaitable used between connection attempts
        """
        self.settings = settings
        self._client_factory = client_factory or default_client_factory
        self._sleep = sleep
        self._client: Optional[Any] = None
        self.state = StoreConnectionState.DISCONNECTED

    @property
    def enabled(self) -> bool:
        return self.settings.enabled and bool(self.settings.host)

    @property
    def is_connected(self) -> bool:
        return self.state == StoreConnectionState.CONNECTED and self._client is not None

    async def connect(self) -> bool:
        """Connect to the store with a fixed retry budget.

        Each failed attempt is logged; after the last one the client gives
        up for good and every later call is a no-op.

        Returns:
            True if connected, False otherwise
        """
        if not self.enabled:
            logger.info("Skip using key-value store (disabled in configuration)")
            return False

        host, port = self.settings.host, self.settings.port
        attempts = self.settings.retry_attempts
        logger.info(f"Trying to connect to key-value store '{host}:{port}'")

        client = self._client_factory(host, port)
        for attempt in range(1, attempts + 1):
            try:
                await client.ping()
            except (RedisError, OSError) as e:
                logger.warning(
                    f"Store connection attempt {attempt}/{attempts} failed: {e}"
                )
                if attempt < attempts:
                    await self._sleep(self.settings.retry_delay)
                continue

            self._client = client
            self.state = StoreConnectionState.CONNECTED
            logger.info(f"Connected to key-value store '{host}:{port}'")
            return True

        logger.error(
            f"Failed to connect to key-value store '{host}:{port}' after "
            f"{attempts} attempts, store sync disabled"
        )
        await self._close_client(client)
        return False

    async def register(self, app_id: Optional[str], surface_id: Optional[int]) -> None:
        """Store app_id -> surface_id and SURID-<surface_id> -> app_id.

        A missing app id or a non-positive surface id is a silent no-op.
        """
        if not self.is_connected:
            return

        if not app_id:
            logger.debug(f"Not registering surface_id {surface_id}: no app id")
            return

        if surface_id is None or surface_id <= 0:
            logger.debug(f"Not registering {app_id}: invalid surface_id {surface_id}")
            return

        try:
            await self._client.set(app_id, surface_id)
            await self._client.set(reverse_key(surface_id), app_id)
        except RedisError as e:
            self._handle_error("register", e)
            return

        logger.info(f"Registered {app_id}@{surface_id}")

    async def unregister(self, surface_id: Optional[int]) -> None:
        """Remove both mappings for surface_id, recovering app_id from the reverse key."""
        if not self.is_connected:
            return

        if surface_id is None or surface_id <= 0:
            return

        key = reverse_key(surface_id)
        try:
            app_id = await self._client.get(key)
            await self._client.delete(key)
            if app_id:
                await self._client.delete(app_id)
        except RedisError as e:
            self._handle_error("unregister", e)
            return

        if app_id:
            logger.info(f"Unregistered {app_id}@{surface_id}")
        else:
            logger.debug(f"No store entry for surface_id {surface_id}")

    async def close(self) -> None:
        client, self._client = self._client, None
        self.state = StoreConnectionState.DISCONNECTED
        if client is not None:
            await self._close_client(client)

    def _handle_error(self, operation: str, error: RedisError) -> None:
        if isinstance(error, (RedisConnectionError, RedisTimeoutError)):
            logger.warning(
                f"Key-value store unreachable during {operation}: {error}; "
                f"store sync disabled"
            )
            self.state = StoreConnectionState.DISCONNECTED
        else:
            logger.warning(f"Key-value store {operation} failed: {error}")

    @staticmethod
    async def _close_client(client: Any) -> None:
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.debug(f"Error closing store client: {e}")
