"""Main daemon entry point with systemd integration.

This module provides startup/shutdown plumbing, journald logging, the
sd_notify handshake and the command line entry point.
"""

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from functools import partial
from pathlib import Path
from typing import List, Optional

from i3ipc import Event

try:
    from systemd import journal, daemon as sd_daemon
    SYSTEMD_AVAILABLE = True
except ImportError:
    SYSTEMD_AVAILABLE = False

from .config import EngineConfig, load_engine_config
from .connection import ResilientIpcConnection
from .constants import IPC_CONNECT_ATTEMPTS, ConfigPaths
from .coordinator import AssignmentCoordinator
from .errors import ConfigError
from .handlers import on_window_close, on_window_new, on_window_title
from .services.event_processor import EventProcessor
from .store_sync import StoreSyncClient
from .sway_host import SwayHost

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


@contextlib.contextmanager
def _suppress_stderr_fd():
    """Suppress stderr at the file descriptor level.

    systemd-python writes directly to fd 2, bypassing sys.stderr.
    """
    stderr_fd = sys.stderr.fileno()
    saved_stderr_fd = os.dup(stderr_fd)

    devnull_fd = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull_fd, stderr_fd)
    os.close(devnull_fd)

    try:
        yield
    finally:
        os.dup2(saved_stderr_fd, stderr_fd)
        os.close(saved_stderr_fd)


class DaemonHealthMonitor:
    """Manages systemd health notifications and watchdog pings."""

    def __init__(self) -> None:
        self.watchdog_interval: Optional[float] = None
        self._setup_watchdog()

    def _setup_watchdog(self) -> None:
        if not SYSTEMD_AVAILABLE:
            return

        watchdog_usec = os.environ.get("WATCHDOG_USEC")
        if watchdog_usec:
            # Ping at 1/3 of the systemd timeout
            self.watchdog_interval = int(watchdog_usec) / 3_000_000
            logger.info(f"Systemd watchdog enabled: {self.watchdog_interval:.1f}s interval")

    def _notify(self, state: str) -> None:
        if not SYSTEMD_AVAILABLE:
            return
        with _suppress_stderr_fd():
            sd_daemon.notify(state)

    def notify_ready(self) -> None:
        self._notify("READY=1")
        logger.info("Surface id agent ready")

    def notify_stopping(self) -> None:
        self._notify("STOPPING=1")

    async def watchdog_loop(self) -> None:
        if not self.watchdog_interval:
            return

        while True:
            await asyncio.sleep(self.watchdog_interval)
            self._notify("WATCHDOG=1")


class SurfaceIdAgentDaemon:
    """Main daemon class."""

    def __init__(self, config_file: Path) -> None:
        self.config_file = config_file
        self.engine_config: Optional[EngineConfig] = None
        self.store_sync: Optional[StoreSyncClient] = None
        self.connection: Optional[ResilientIpcConnection] = None
        self.host: Optional[SwayHost] = None
        self.coordinator: Optional[AssignmentCoordinator] = None
        self.event_processor: Optional[EventProcessor] = None
        self.health_monitor = DaemonHealthMonitor()
        self.shutdown_event = asyncio.Event()

    async def initialize(self) -> None:
        """Initialize daemon components.

        Order matters: configuration is validated first (fatal on error),
        then the store connection is attempted to completion before any
        lifecycle event can be processed.

        Raises:
            ConfigError: If the configuration is invalid
            ConnectionError: If the compositor cannot be reached
        """
        logger.info("Initializing surface id agent...")

        self.engine_config = load_engine_config(self.config_file)

        self.store_sync = StoreSyncClient(self.engine_config.store_settings)
        await self.store_sync.connect()

        self.connection = ResilientIpcConnection()
        conn = await self.connection.connect_with_retry(max_attempts=IPC_CONNECT_ATTEMPTS)

        self.host = SwayHost(conn)
        self.coordinator = AssignmentCoordinator(
            self.engine_config.rule_store, self.host, self.store_sync
        )
        self.event_processor = EventProcessor(self.coordinator)

    def register_event_handlers(self) -> None:
        """Register compositor lifecycle handlers."""
        handler_args = dict(host=self.host, processor=self.event_processor)
        self.connection.subscribe(Event.WINDOW_NEW, partial(on_window_new, **handler_args))
        self.connection.subscribe(Event.WINDOW_TITLE, partial(on_window_title, **handler_args))
        self.connection.subscribe(Event.WINDOW_CLOSE, partial(on_window_close, **handler_args))
        logger.info("Subscribed to window::new, window::title and window::close")

    async def run(self) -> None:
        """Main event loop."""
        await self.event_processor.initialize()
        await self.event_processor.start_processing()

        self.health_monitor.notify_ready()
        watchdog_task = asyncio.create_task(self.health_monitor.watchdog_loop())

        try:
            await self.connection.main()
        finally:
            watchdog_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watchdog_task

    async def shutdown(self) -> None:
        """Graceful shutdown."""
        logger.info("Shutting down surface id agent...")
        self.health_monitor.notify_stopping()

        if self.connection:
            self.connection.close()

        if self.event_processor:
            await self.event_processor.stop_processing()
            logger.info(f"Event metrics: {self.event_processor.get_metrics()}")

        if self.store_sync:
            await self.store_sync.close()

        logger.info("Daemon shutdown complete")

    def setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        def shutdown_handler(signum, frame):
            logger.info(f"Received signal {signum}, initiating shutdown...")
            loop.call_soon_threadsafe(self.shutdown_event.set)

        signal.signal(signal.SIGTERM, shutdown_handler)
        signal.signal(signal.SIGINT, shutdown_handler)


def setup_logging(log_level: Optional[str] = None) -> None:
    """Setup logging to systemd journal or stderr."""
    log_level = (log_level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if SYSTEMD_AVAILABLE:
        with _suppress_stderr_fd():
            handler = journal.JournalHandler(SYSLOG_IDENTIFIER="surface-id-agent")
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))
    root_logger.addHandler(handler)

    logger.debug(f"Logging configured: level={log_level}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="surface-id-agent",
        description="Assign stable surface ids to compositor windows",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help=f"Configuration file (default: ${ConfigPaths.CONFIG_ENV_VAR} or {ConfigPaths.CONFIG_FILE})",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: $LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)


async def main_async(config_file: Path) -> int:
    """Async main function.

    Returns:
        Exit code (0 = success, 2 = configuration error, 1 = other failure)
    """
    daemon = SurfaceIdAgentDaemon(config_file)

    try:
        daemon.setup_signal_handlers()
        await daemon.initialize()
        daemon.register_event_handlers()

        run_task = asyncio.create_task(daemon.run())
        shutdown_task = asyncio.create_task(daemon.shutdown_event.wait())

        done, pending = await asyncio.wait(
            [run_task, shutdown_task], return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()

        await daemon.shutdown()

        if run_task in done and run_task.exception() is not None:
            logger.error(f"Event loop failed: {run_task.exception()}")
            return EXIT_FAILURE
        return EXIT_OK

    except ConfigError as e:
        logger.error(f"Read config failed: {e}")
        return EXIT_CONFIG_ERROR

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        await daemon.shutdown()
        return EXIT_FAILURE


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    config_file = args.config or ConfigPaths.resolve_config_file()
    logger.info(f"Surface id agent starting (PID {os.getpid()}, config {config_file})")

    try:
        sys.exit(asyncio.run(main_async(config_file)))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
