"""
Shared fixtures for unit tests.

This module provides reusable fixtures for testing the CEC proxy components.
"""

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest

from cec_proxy.config import TopicConfig
from cec_proxy.entities.model import Device


class FakeTransport:
    """In-memory Transport: records publishes/subscribes, replays queued messages."""

    def __init__(self) -> None:
        self.connected = True
        self.publish = AsyncMock()
        self.subscribe = AsyncMock()
        self.connect = AsyncMock(side_effect=self._mark_connected)
        self.disconnect = AsyncMock(side_effect=self._mark_disconnected)
        self.incoming: list[object] = []
        self.stream_error: Exception | None = None

    @property
    def is_connected(self) -> bool:
        return self.connected

    def _mark_connected(self) -> None:
        self.connected = True

    def _mark_disconnected(self) -> None:
        self.connected = False

    async def messages(self) -> AsyncIterator[object]:
        while self.incoming:
            yield self.incoming.pop(0)
        if self.stream_error is not None:
            error, self.stream_error = self.stream_error, None
            raise error

    def published(self, topic: str) -> list[object]:
        """Payloads published to ``topic``, in order."""
        return [c.args[1] for c in self.publish.call_args_list if c.args[0] == topic]


@pytest.fixture
def fake_transport():
    """A connected FakeTransport."""
    return FakeTransport()


@pytest.fixture
def topic_config():
    return TopicConfig(prefix="homeassistant")


@pytest.fixture
def device():
    """The device used by the proxy examples: unique id "proxy"."""
    return Device(unique_id="proxy", topic_prefix="homeassistant")


@pytest.fixture
def mock_mqtt_message():
    """Create a factory for mock MQTT messages."""

    def create_message(topic: str, payload: str | bytes | None):
        msg = MagicMock()
        msg.topic = MagicMock()
        msg.topic.value = topic
        msg.payload = payload.encode() if isinstance(payload, str) else payload
        return msg

    return create_message


@pytest.fixture
def mock_driver():
    """
    Mock LineProcessDriver.

    Returns a MagicMock recording ``send`` calls and capturing the line consumer.
    """
    driver = MagicMock()
    driver.send = MagicMock(side_effect=len)
    driver.consumer = None

    def attach(callback):
        driver.consumer = callback

    driver.attach_line_consumer = MagicMock(side_effect=attach)
    return driver
