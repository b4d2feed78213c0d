"""Shared fixtures for surface-id-agent tests.

Provides in-memory stand-ins for the host compositor and the key-value
store so the engine can be exercised without Sway or a Redis server.
"""

from typing import Dict, List, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from surface_id_agent.host import SurfaceIdRejected
from surface_id_agent.models.config import StoreSettings
from surface_id_agent.store_sync import StoreSyncClient


class FakeSurface:
    """Host surface with settable id."""

    def __init__(self, host: "FakeHost", key, app_id=None, title=None, current_id=None):
        self.host = host
        self.key = key
        self.app_id = app_id
        self.title = title
        self.current_id = current_id
        self.set_id_calls: List[int] = []

    def get_current_id(self) -> Optional[int]:
        return self.current_id

    def get_app_id(self) -> Optional[str]:
        return self.app_id

    def get_title(self) -> Optional[str]:
        return self.title

    async def set_id(self, surface_id: int) -> None:
        self.set_id_calls.append(surface_id)
        if surface_id in self.host.rejected_ids:
            raise SurfaceIdRejected(surface_id, "rejected by test host")
        holder = self.host.holder_of(surface_id)
        if holder is not None and holder is not self:
            raise SurfaceIdRejected(surface_id, f"held by {holder.key}")
        self.current_id = surface_id


class FakeHost:
    """Host compositor keeping surfaces in a dict."""

    def __init__(self):
        self.surfaces: Dict[object, FakeSurface] = {}
        self.rejected_ids = set()
        self.lookups: List[int] = []
        self.forgotten: List[object] = []

    def add(self, key, app_id=None, title=None, current_id=None) -> FakeSurface:
        surface = FakeSurface(self, key, app_id=app_id, title=title, current_id=current_id)
        self.surfaces[key] = surface
        return surface

    def remove(self, surface: FakeSurface) -> None:
        self.surfaces.pop(surface.key, None)

    def holder_of(self, surface_id: int) -> Optional[FakeSurface]:
        for surface in self.surfaces.values():
            if surface.current_id == surface_id:
                return surface
        return None

    def forget(self, surface_key) -> None:
        self.forgotten.append(surface_key)

    async def get_surface_from_id(self, surface_id: int) -> Optional[FakeSurface]:
        self.lookups.append(surface_id)
        return self.holder_of(surface_id)


class FakeRedis:
    """In-memory async client speaking the SET/GET/DEL subset."""

    def __init__(self, ping_failures: int = 0):
        self.data: Dict[str, str] = {}
        self.ping_failures = ping_failures
        self.ping_calls = 0
        self.commands: List[tuple] = []
        self.fail_with: Optional[Exception] = None
        self.closed = False

    async def ping(self) -> bool:
        self.ping_calls += 1
        if self.ping_calls <= self.ping_failures:
            raise RedisConnectionError("Connection refused")
        return True

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def set(self, key, value) -> bool:
        self._check()
        self.commands.append(("SET", key, str(value)))
        self.data[key] = str(value)
        return True

    async def get(self, key) -> Optional[str]:
        self._check()
        self.commands.append(("GET", key))
        return self.data.get(key)

    async def delete(self, *keys) -> int:
        self._check()
        removed = 0
        for key in keys:
            self.commands.append(("DEL", key))
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def aclose(self) -> None:
        self.closed = True


class RecordingSleep:
    """Replacement for asyncio.sleep that records delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def store_settings():
    return StoreSettings(host="127.0.0.1", port=6379, retry_attempts=3, retry_delay=1.0)


@pytest.fixture
async def connected_store(fake_redis, store_settings, recording_sleep):
    """StoreSyncClient connected to the in-memory store."""
    client = StoreSyncClient(
        store_settings,
        client_factory=lambda host, port: fake_redis,
        sleep=recording_sleep,
    )
    assert await client.connect()
    return client


@pytest.fixture
def disabled_store():
    return StoreSyncClient(StoreSettings(enabled=False, host=None))
