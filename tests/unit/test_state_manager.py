"""
Unit tests for StateManager.

State updates are issued from worker threads, as the cec-client reader does.
"""

import asyncio

import aiomqtt
import pytest
from prometheus_client import REGISTRY

from cec_proxy.mqtt.state import StateManager

STATE_TOPIC = "homeassistant/switch/proxy_tv/state"


async def wait_for_calls(mock, count: int, timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while mock.call_count < count:
            await asyncio.sleep(0.01)


def state_update_count(entity: str, outcome: str) -> float:
    labels = {"entity": entity, "outcome": outcome}
    return REGISTRY.get_sample_value("cec_proxy_state_updates_total", labels) or 0.0


class TestStateManager:
    """Tests for StateManager"""

    @pytest.mark.asyncio
    async def test_update_from_thread_publishes_on_loop(self, fake_transport):
        manager = StateManager(fake_transport, asyncio.get_running_loop(), STATE_TOPIC, "tv")

        await asyncio.to_thread(manager.update_state, "ON")
        await wait_for_calls(fake_transport.publish, 1)

        fake_transport.publish.assert_awaited_once_with(STATE_TOPIC, "ON", qos=1, retain=False)

    @pytest.mark.asyncio
    async def test_updates_keep_order(self, fake_transport):
        manager = StateManager(fake_transport, asyncio.get_running_loop(), STATE_TOPIC, "tv")

        def produce() -> None:
            for state in ("ON", "OFF", "UNKNOWN", "ON"):
                manager.update_state(state)

        await asyncio.to_thread(produce)
        await wait_for_calls(fake_transport.publish, 4)

        assert fake_transport.published(STATE_TOPIC) == ["ON", "OFF", "UNKNOWN", "ON"]

    @pytest.mark.asyncio
    async def test_publish_failure_is_logged_not_raised(self, fake_transport):
        fake_transport.publish.side_effect = aiomqtt.MqttError("not connected")
        manager = StateManager(fake_transport, asyncio.get_running_loop(), STATE_TOPIC, "tv-failing")
        before = state_update_count("tv-failing", "failed")

        await asyncio.to_thread(manager.update_state, "ON")
        await wait_for_calls(fake_transport.publish, 1)
        await asyncio.sleep(0.05)

        assert state_update_count("tv-failing", "failed") == before + 1

    def test_closed_loop_drops_update(self, fake_transport):
        loop = asyncio.new_event_loop()
        loop.close()
        manager = StateManager(fake_transport, loop, STATE_TOPIC, "tv-closed")
        before = state_update_count("tv-closed", "failed")

        manager.update_state("ON")

        fake_transport.publish.assert_not_called()
        assert state_update_count("tv-closed", "failed") == before + 1

    def test_copy_shares_target(self, fake_transport):
        loop = asyncio.new_event_loop()
        try:
            manager = StateManager(fake_transport, loop, STATE_TOPIC, "tv")
            clone = manager.copy()

            assert clone is not manager
            assert clone.transport is fake_transport
            assert clone.loop is loop
            assert clone.state_topic == STATE_TOPIC
            assert repr(clone) == f"StateManager(entity_name='tv', state_topic='{STATE_TOPIC}')"
        finally:
            loop.close()
