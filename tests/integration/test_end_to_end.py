"""
End-to-end tests: compositor events through the processor, coordinator and
store mirror.
"""

import re
from types import SimpleNamespace
from typing import Dict, List

import pytest

from surface_id_agent.config import load_engine_config
from surface_id_agent.coordinator import AssignmentCoordinator
from surface_id_agent.handlers import on_window_close, on_window_new, on_window_title
from surface_id_agent.models.events import LifecycleEvent, LifecycleEventType
from surface_id_agent.services.event_processor import EventProcessor
from surface_id_agent.sway_host import SwayHost


@pytest.fixture
def engine_config(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(
        """{
            "desktop_apps": [
                {"surface_id": 10, "app_id": "radio"},
                {"surface_id": 11, "app_title": "Rear Camera"}
            ],
            "desktop_app_default": {"default_surface_id": 50, "default_surface_id_max": 52},
            "redis_server": {"server": "127.0.0.1"}
        }"""
    )
    return load_engine_config(config_file)


@pytest.fixture
async def running_processor(engine_config, fake_host, connected_store):
    coordinator = AssignmentCoordinator(engine_config.rule_store, fake_host, connected_store)
    processor = EventProcessor(coordinator)
    await processor.initialize()
    await processor.start_processing()
    yield processor
    await processor.stop_processing()


async def send(processor, event_type, surface):
    await processor.enqueue(LifecycleEvent(event_type, surface))
    await processor.join()


class TestAssignmentFlow:

    @pytest.mark.asyncio
    async def test_default_pool_assignment_and_removal(
        self, running_processor, fake_host, fake_redis
    ):
        surface = fake_host.add(1, app_id="nav")

        await send(running_processor, LifecycleEventType.CONFIGURE, surface)

        assert surface.current_id == 50
        assert fake_redis.data == {"nav": "50", "SURID-50": "nav"}

        await send(running_processor, LifecycleEventType.REMOVE, surface)

        assert fake_redis.data == {}

    @pytest.mark.asyncio
    async def test_rule_and_title_rule(self, running_processor, fake_host, fake_redis):
        radio = fake_host.add(1, app_id="radio")
        camera = fake_host.add(2, app_id=None, title="Rear Camera")

        await send(running_processor, LifecycleEventType.CONFIGURE, radio)
        await send(running_processor, LifecycleEventType.CONFIGURE, camera)

        assert radio.current_id == 10
        assert camera.current_id == 11
        assert fake_redis.data == {
            "radio": "10",
            "SURID-10": "radio",
            "Rear Camera": "11",
            "SURID-11": "Rear Camera",
        }

    @pytest.mark.asyncio
    async def test_pool_ids_not_reused(self, running_processor, fake_host):
        first = fake_host.add(1, app_id="a")
        await send(running_processor, LifecycleEventType.CONFIGURE, first)
        await send(running_processor, LifecycleEventType.REMOVE, first)
        fake_host.remove(first)

        second = fake_host.add(2, app_id="b")
        third = fake_host.add(3, app_id="c")
        await send(running_processor, LifecycleEventType.CONFIGURE, second)
        await send(running_processor, LifecycleEventType.CONFIGURE, third)

        assert second.current_id == 51
        assert third.current_id is None
        metrics = running_processor.get_metrics()
        assert metrics["ids_assigned"] == 2
        assert metrics["assignments_failed"] == 1

    @pytest.mark.asyncio
    async def test_rule_survives_reopen(self, running_processor, fake_host, fake_redis):
        first = fake_host.add(1, app_id="radio")
        await send(running_processor, LifecycleEventType.CONFIGURE, first)
        await send(running_processor, LifecycleEventType.REMOVE, first)
        fake_host.remove(first)

        reopened = fake_host.add(2, app_id="radio")
        await send(running_processor, LifecycleEventType.CONFIGURE, reopened)

        assert reopened.current_id == 10
        assert fake_redis.data == {"radio": "10", "SURID-10": "radio"}


class MarkingSwayConnection:
    """Sway connection double that keeps container marks between commands."""

    _MARK_COMMAND = re.compile(r'^\[con_id=(\d+)\] mark --add "(.+)"$')

    def __init__(self):
        self.marks: Dict[int, List[str]] = {}
        self.commands: List[str] = []

    async def command(self, cmd):
        self.commands.append(cmd)
        parsed = self._MARK_COMMAND.match(cmd)
        if not parsed:
            return [SimpleNamespace(success=False, error=f"unsupported: {cmd}")]
        self.marks.setdefault(int(parsed.group(1)), []).append(parsed.group(2))
        return [SimpleNamespace(success=True, error=None)]

    async def get_tree(self):
        def find_marked(pattern):
            regex = re.compile(pattern)
            return [
                SimpleNamespace(id=con_id, app_id=None, window_class=None, name=None, marks=list(marks))
                for con_id, marks in self.marks.items()
                if any(regex.search(mark) for mark in marks)
            ]

        return SimpleNamespace(find_marked=find_marked)


def window_event(con_id, app_id, name):
    """Event carrying a fresh, unmarked container snapshot."""
    container = SimpleNamespace(
        id=con_id, app_id=app_id, window_class=None, name=name, marks=[]
    )
    return SimpleNamespace(container=container)


class TestSwayHandlers:

    @pytest.fixture
    def sway_conn(self):
        return MarkingSwayConnection()

    async def queue_and_process(self, processor, sway_conn, host, *handlers_and_events):
        for handler, event in handlers_and_events:
            await handler(sway_conn, event, host, processor)
        await processor.initialize()
        await processor.start_processing()
        await processor.join()

    @pytest.mark.asyncio
    async def test_new_and_title_queued_together_rule_hit(
        self, engine_config, sway_conn, disabled_store
    ):
        host = SwayHost(sway_conn)
        coordinator = AssignmentCoordinator(engine_config.rule_store, host, disabled_store)
        processor = EventProcessor(coordinator)

        await self.queue_and_process(
            processor,
            sway_conn,
            host,
            (on_window_new, window_event(42, "radio", "Radio")),
            (on_window_title, window_event(42, "radio", "Radio - FM 98.1")),
        )
        await processor.stop_processing()

        assert sway_conn.commands == ['[con_id=42] mark --add "surface_id:10"']
        assert sway_conn.marks == {42: ["surface_id:10"]}
        outcomes = [record.outcome for record in processor.get_recent_events()]
        assert outcomes[0].surface_id == 10
        assert outcomes[1].skipped

    @pytest.mark.asyncio
    async def test_new_and_title_queued_together_pool_miss(
        self, engine_config, sway_conn, connected_store, fake_redis
    ):
        host = SwayHost(sway_conn)
        coordinator = AssignmentCoordinator(engine_config.rule_store, host, connected_store)
        processor = EventProcessor(coordinator)

        await self.queue_and_process(
            processor,
            sway_conn,
            host,
            (on_window_new, window_event(42, "nav", "Navigation")),
            (on_window_title, window_event(42, "nav", "Navigation - Home")),
        )

        assert sway_conn.marks == {42: ["surface_id:50"]}
        assert len(sway_conn.commands) == 1
        assert coordinator.allocator.state.next_id == 51
        assert fake_redis.data == {"nav": "50", "SURID-50": "nav"}

        # Unmarked close snapshot: the id comes from the host record
        await on_window_close(sway_conn, window_event(42, "nav", "Navigation"), host, processor)
        await processor.join()
        await processor.stop_processing()

        assert fake_redis.data == {}
        assert host.assigned_id(42) is None
        events = [record.event_type for record in processor.get_recent_events()]
        assert events == [
            LifecycleEventType.CONFIGURE,
            LifecycleEventType.CONFIGURE,
            LifecycleEventType.REMOVE,
        ]

    @pytest.mark.asyncio
    async def test_rule_unbound_on_close(self, engine_config, sway_conn, disabled_store):
        host = SwayHost(sway_conn)
        coordinator = AssignmentCoordinator(engine_config.rule_store, host, disabled_store)
        processor = EventProcessor(coordinator)

        await self.queue_and_process(
            processor,
            sway_conn,
            host,
            (on_window_new, window_event(42, "radio", "Radio")),
            (on_window_close, window_event(42, "radio", "Radio")),
        )
        await processor.stop_processing()

        assert not coordinator.rule_store.rules[0].is_bound
        assert host.assigned_id(42) is None
