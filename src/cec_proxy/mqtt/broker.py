"""Entity registry, topic routing and the MQTT event loop.

The broker is the only component that talks to the transport. It publishes
discovery messages for registered entities, subscribes to their command
topics, dispatches inbound commands, and re-publishes discovery whenever
Home Assistant announces itself on its status topic (the birth message).
Discovery messages are never retained; the birth message is what brings a
restarted Home Assistant back in sync.
"""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Any

import aiomqtt

from cec_proxy.config import ProxyConfig, TopicConfig
from cec_proxy.correlation import correlation_context
from cec_proxy.entities.model import Entity
from cec_proxy.instrumentation import timed_async
from cec_proxy.logging_abstraction import get_logger
from cec_proxy.metrics import (
    record_command_dispatched,
    record_command_error,
    record_discovery_publish,
    record_reconnection,
    record_registered_entities,
    record_undecodable_payload,
)
from cec_proxy.mqtt.state import StateManager
from cec_proxy.mqtt.transport import MqttTransport, Transport

__all__ = ["BrokerState", "HaBroker"]

logger = get_logger(__name__)

DISCOVERY_QOS = 2
COMMAND_QOS = 0
STATUS_QOS = 1
# MQTT v3 CONNACK 5 / v5 reason 134: bad credentials, retrying won't help
_AUTH_FAILURE_CODES = ("code:5]", "code:134]")


class BrokerState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    LISTENING = "listening"


class HaBroker:
    """The connection to Home Assistant through one MQTT broker."""

    lp: str = "broker:"

    def __init__(
        self,
        transport: Transport,
        topic_config: TopicConfig,
        reconnect_delay: float = 10.0,
    ) -> None:
        self.transport: Transport = transport
        self.status_topic: str = topic_config.status_topic
        self.birth_message: str = topic_config.birth_message
        self.will_message: str = topic_config.will_message
        self.reconnect_delay: float = reconnect_delay
        self.entities: dict[str, Entity] = {}
        self.topic_map: dict[str, list[str]] = {}
        self._listening: bool = False

    @classmethod
    def from_config(cls, config: ProxyConfig) -> HaBroker:
        return cls(MqttTransport(config.mqtt), config.topic, config.mqtt.reconnect_delay)

    @property
    def state(self) -> BrokerState:
        if not self.transport.is_connected:
            return BrokerState.DISCONNECTED
        if self._listening:
            return BrokerState.LISTENING
        return BrokerState.CONNECTED

    async def connect(self) -> None:
        """Open the initial connection.

        Raises:
            aiomqtt.MqttError: if the broker can not be reached

        """
        await self.transport.connect()

    async def close(self) -> None:
        await self.transport.disconnect()

    async def add_entity(self, entity: Entity) -> None:
        """Register ``entity``: wire its state, route its commands, announce it.

        A second entity with the same name replaces the first.
        """
        lp = f"{self.lp}add_entity:"
        name = entity.name
        if name in self.entities:
            logger.warning("%s entity %s already registered, replacing it", lp, name)
            self._remove_topic_mapping(name)

        state_topic = entity.get_state_topic()
        if state_topic is not None:
            entity.connect_state(StateManager(self.transport, asyncio.get_running_loop(), state_topic, name))

        command_topic = entity.get_command_topic()
        if command_topic is not None:
            self._add_topic_mapping(command_topic, name)

        _ = await self.send_discovery_message(entity)
        await self._subscribe_to_command_topic(entity)

        self.entities[name] = entity
        record_registered_entities(len(self.entities))
        logger.info(
            "%s registered %s",
            lp,
            name,
            extra={"state_topic": state_topic, "command_topic": command_topic},
        )

    def _add_topic_mapping(self, topic: str, name: str) -> None:
        names = self.topic_map.setdefault(topic, [])
        if name not in names:
            names.append(name)

    def _remove_topic_mapping(self, name: str) -> None:
        for topic in list(self.topic_map):
            remaining = [n for n in self.topic_map[topic] if n != name]
            if remaining:
                self.topic_map[topic] = remaining
            else:
                del self.topic_map[topic]

    @timed_async("discovery_publish")
    async def send_discovery_message(self, entity: Entity) -> bool:
        lp = f"{self.lp}discovery:"
        topic = entity.get_discovery_topic()
        discovery_message = entity.get_config_payload().to_json()
        logger.debug("%s publishing config to topic %s: %s", lp, topic, discovery_message)
        try:
            await self.transport.publish(topic, discovery_message, qos=DISCOVERY_QOS, retain=False)
        except aiomqtt.MqttError as exc:
            logger.warning("%s unable to publish discovery message for entity %s: %s", lp, entity.name, exc)
            record_discovery_publish(entity.name, "failed")
            return False
        record_discovery_publish(entity.name, "published")
        return True

    async def send_all_discovery_messages(self) -> int:
        """Re-publish every registered entity's discovery payload.

        Returns:
            Number of payloads published successfully

        """
        logger.info("%s sending discovery for %d entities", self.lp, len(self.entities))
        published = 0
        for entity in list(self.entities.values()):
            if await self.send_discovery_message(entity):
                published += 1
        return published

    async def _subscribe_to_command_topic(self, entity: Entity) -> None:
        command_topic = entity.get_command_topic()
        if command_topic is None:
            return
        try:
            await self.transport.subscribe(command_topic, qos=COMMAND_QOS)
        except aiomqtt.MqttError as exc:
            logger.warning("%s unable to subscribe to %s: %s", self.lp, command_topic, exc)

    async def subscribe_to_all_command_topics(self) -> None:
        for topic in list(self.topic_map):
            try:
                await self.transport.subscribe(topic, qos=COMMAND_QOS)
            except aiomqtt.MqttError as exc:
                logger.warning("%s unable to subscribe to %s: %s", self.lp, topic, exc)

    def notify_entities(self, topic: str, payload: Any) -> int:
        """Dispatch a command payload to every entity routed on ``topic``.

        Unknown topics are ignored. A payload that is not valid UTF-8 is
        logged and dropped.

        Returns:
            Number of entities whose command handler completed

        """
        lp = f"{self.lp}notify:"
        names = self.topic_map.get(topic)
        if not names:
            logger.debug("%s no entity listens on %s", lp, topic)
            return 0

        if payload is None:
            text = ""
        elif isinstance(payload, (bytes, bytearray)):
            try:
                text = bytes(payload).decode("utf-8")
            except UnicodeDecodeError:
                logger.error("%s payload on %s is not valid UTF-8, dropping it: %r", lp, topic, payload)
                record_undecodable_payload(topic)
                return 0
        else:
            text = str(payload)

        notified = 0
        for name in list(names):
            entity = self.entities.get(name)
            if entity is None:
                logger.error("%s routing table references unknown entity %s", lp, name)
                continue
            try:
                entity.on_command(text)
            except Exception:
                logger.exception("%s command handler for %s failed on payload %r", lp, name, text)
                record_command_error(name)
                continue
            record_command_dispatched(name)
            notified += 1
        return notified

    async def handle_message(self, message: aiomqtt.Message) -> None:
        lp = f"{self.lp}rcv:"
        topic = message.topic.value
        payload = message.payload
        with correlation_context(origin="mqtt"):
            if topic == self.status_topic:
                await self._handle_status_message(payload)
                return
            logger.info("%s >>> MQTT MESSAGE RECEIVED: topic=%s, payload=%r", lp, topic, payload)
            # command handlers block on cec-client writes
            _ = await asyncio.to_thread(self.notify_entities, topic, payload)

    async def _handle_status_message(self, payload: Any) -> None:
        lp = f"{self.lp}status:"
        if isinstance(payload, (bytes, bytearray)):
            status = bytes(payload).decode("utf-8", errors="replace")
        else:
            status = "" if payload is None else str(payload)

        if status == self.birth_message:
            logger.info("%s mqtt integration online. resending discovery messages", lp)
            _ = await self.send_all_discovery_messages()
        elif status == self.will_message:
            logger.info("%s received Last Will msg from Home Assistant, HASS is offline!", lp)
        else:
            logger.warning("%s Unknown HASS status message: %s", lp, status)

    async def listen(self) -> None:
        """Subscribe to the Home Assistant status topic and process messages.

        Runs until the message stream ends. A failure while handling one
        message is logged and the next message is processed.

        Raises:
            aiomqtt.MqttError: when the connection is lost

        """
        lp = f"{self.lp}listen:"
        await self.transport.subscribe(self.status_topic, qos=STATUS_QOS)
        logger.debug("%s Subscribed to %s. Waiting for MQTT messages...", lp, self.status_topic)
        self._listening = True
        try:
            async for message in self.transport.messages():
                try:
                    await self.handle_message(message)
                except Exception:
                    logger.exception("%s failed to handle message on %s", lp, message.topic)
        finally:
            self._listening = False

    async def run(self) -> None:
        """Listen forever, reconnecting whenever the connection drops.

        Raises:
            aiomqtt.MqttError: if the first connection attempt fails

        """
        lp = f"{self.lp}run:"
        if not self.transport.is_connected:
            await self.transport.connect()
        while True:
            try:
                await self.listen()
            except aiomqtt.MqttError as exc:
                logger.warning("%s MQTT error: %s", lp, exc)
                record_reconnection("connection_lost")
                await self.transport.disconnect()
                await self._reconnect()
            else:
                logger.info("%s MQTT message stream ended", lp)
                return

    async def _reconnect(self) -> None:
        lp = f"{self.lp}reconnect:"
        while True:
            logger.info("%s sleeping for %s seconds before re-connecting...", lp, self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)
            try:
                await self.transport.connect()
            except aiomqtt.MqttError as exc:
                if any(code in str(exc) for code in _AUTH_FAILURE_CODES):
                    logger.error("%s Bad username or password, check your MQTT credentials", lp)
                    raise
                logger.info("%s connecting to MQTT broker failed: %s", lp, exc)
                record_reconnection("connect_failed")
                continue
            await self.subscribe_to_all_command_topics()
            _ = await self.send_all_discovery_messages()
            return
