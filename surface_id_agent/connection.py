"""Compositor IPC connection manager with bounded retry.

Handles the Sway/i3 IPC connection, handler registration and the event
loop that delivers lifecycle notifications.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from i3ipc import Event, aio

logger = logging.getLogger(__name__)


class ResilientIpcConnection:
    """Manages the compositor IPC connection."""

    def __init__(
        self,
        connection_factory: Optional[Callable[[], aio.Connection]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize connection manager.

        Args:
            connection_factory: Builds an unconnected i3ipc.aio.Connection
            sleep: Awaitable used between connection attempts
        """
        self._connection_factory = connection_factory or (
            lambda: aio.Connection(auto_reconnect=True)
        )
        self._sleep = sleep
        self.conn: Optional[aio.Connection] = None
        self.is_shutting_down = False
        self.reconnect_delay = 0.1  # Initial delay: 100ms

    @property
    def is_connected(self) -> bool:
        return self.conn is not None and not self.is_shutting_down

    async def connect_with_retry(self, max_attempts: int = 10) -> aio.Connection:
        """Connect to the compositor with exponential backoff retry.

        Args:
            max_attempts: Maximum connection attempts

        Returns:
            Connected i3ipc.aio.Connection

        Raises:
            ConnectionError: If connection fails after max attempts
        """
        attempt = 0
        delay = self.reconnect_delay

        while attempt < max_attempts:
            try:
                logger.info(
                    f"Attempting to connect to compositor IPC "
                    f"(attempt {attempt + 1}/{max_attempts})"
                )
                self.conn = await self._connection_factory().connect()

                version = await self.conn.get_version()
                logger.info(f"Connected to compositor version {version.human_readable}")
                return self.conn

            except Exception as e:
                # i3ipc raises a bare Exception when no socket path is found
                logger.warning(f"Connection attempt {attempt + 1} failed: {e}")
                self.conn = None
                attempt += 1

                if attempt < max_attempts:
                    logger.debug(f"Waiting {delay:.1f}s before retry...")
                    await self._sleep(delay)
                    # Exponential backoff: double delay up to 5s max
                    delay = min(delay * 2, 5.0)

        raise ConnectionError(f"Failed to connect to compositor after {max_attempts} attempts")

    def subscribe(self, event: Event, handler: Callable) -> None:
        """Register an async handler; i3ipc subscribes to the base event itself."""
        if not self.conn:
            raise RuntimeError("Cannot register handlers: not connected")
        self.conn.on(event, handler)

    async def main(self) -> None:
        """Run the IPC event loop until the connection is closed."""
        if not self.conn:
            raise RuntimeError("Cannot run event loop: not connected")
        await self.conn.main()

    def close(self) -> None:
        self.is_shutting_down = True
        if self.conn:
            self.conn.main_quit()
