"""aiomqtt-backed pub/sub transport used by the broker."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol

import aiomqtt

from cec_proxy.config import MqttConfig
from cec_proxy.logging_abstraction import get_logger

__all__ = ["MqttTransport", "Transport"]

logger = get_logger(__name__)


class Transport(Protocol):
    """The slice of an MQTT client the broker depends on."""

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def publish(self, topic: str, payload: str | bytes, qos: int = 0, retain: bool = False) -> None: ...

    async def subscribe(self, topic: str, qos: int = 0) -> None: ...

    def messages(self) -> AsyncIterator[aiomqtt.Message]: ...


class MqttTransport:
    """One MQTT connection, rebuilt from scratch on every ``connect()``."""

    lp: str = "mqtt:"

    def __init__(self, config: MqttConfig) -> None:
        self.config: MqttConfig = config
        self.client: aiomqtt.Client | None = None
        self._connected: bool = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _build_client(self) -> aiomqtt.Client:
        will = None
        if self.config.last_will is not None:
            will = aiomqtt.Will(
                topic=self.config.last_will.topic,
                payload=self.config.last_will.message,
                qos=self.config.last_will.qos,
                retain=self.config.last_will.retain,
            )
        credentials = self.config.credentials
        return aiomqtt.Client(
            hostname=self.config.host,
            port=self.config.port,
            username=credentials.username if credentials else None,
            password=credentials.password if credentials else None,
            identifier=self.config.client_id,
            keepalive=int(self.config.keep_alive),
            clean_session=self.config.clean_session,
            will=will,
        )

    async def connect(self) -> None:
        """Open a new connection.

        Raises:
            aiomqtt.MqttError: if the broker can not be reached or refuses us

        """
        lp = f"{self.lp}connect:"
        self._connected = False
        logger.debug("%s Connecting to MQTT broker %s:%s...", lp, self.config.host, self.config.port)
        self.client = self._build_client()
        _ = await self.client.__aenter__()
        self._connected = True
        logger.info(
            "%s Connected to MQTT broker: %s port: %s",
            lp,
            self.config.host,
            self.config.port,
            extra={"client_id": self.config.client_id},
        )

    async def disconnect(self) -> None:
        lp = f"{self.lp}disconnect:"
        if self.client is None:
            return
        try:
            logger.debug("%s Disconnecting from broker...", lp)
            await self.client.__aexit__(None, None, None)
        except aiomqtt.MqttError as exc:
            logger.warning("%s MQTT disconnect failed: %s", lp, exc)
        else:
            logger.info("%s Disconnected from MQTT broker", lp)
        finally:
            self._connected = False
            self.client = None

    def _require_client(self) -> aiomqtt.Client:
        if self.client is None or not self._connected:
            msg = "not connected to the MQTT broker"
            raise aiomqtt.MqttError(msg)
        return self.client

    async def publish(self, topic: str, payload: str | bytes, qos: int = 0, retain: bool = False) -> None:
        client = self._require_client()
        try:
            await client.publish(topic, payload, qos=qos, retain=retain)
        except aiomqtt.MqttError:
            self._connected = False
            raise

    async def subscribe(self, topic: str, qos: int = 0) -> None:
        client = self._require_client()
        try:
            _ = await client.subscribe(topic, qos=qos)
        except aiomqtt.MqttError:
            self._connected = False
            raise

    async def messages(self) -> AsyncIterator[aiomqtt.Message]:
        """Yield incoming messages until the connection drops.

        Raises:
            aiomqtt.MqttError: when the connection is lost

        """
        client = self._require_client()
        try:
            async for message in client.messages:
                yield message
        except aiomqtt.MqttError:
            self._connected = False
            raise
