"""Transport-agnostic description of Home Assistant MQTT entities.

A ``Device`` groups entities in the Home Assistant UI. Each ``Entity`` is a
capability-typed endpoint whose topics are derived from the device and its
own name; the state and command topics exist only when the matching
capability has been attached.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cec_proxy.entities.payloads import DiscoveryPayload
from cec_proxy.exceptions import CapabilityAlreadySetError

if TYPE_CHECKING:
    from cec_proxy.config import ProxyConfig
    from cec_proxy.mqtt.state import StateManager

__all__ = [
    "Commandable",
    "Device",
    "DeviceClass",
    "Entity",
    "EntityClass",
    "SimpleCommand",
    "StateSetup",
]

_FORBIDDEN_TOPIC_CHARS = ("/", "+", "#")


class EntityClass(StrEnum):
    """Home Assistant integration type; also the discovery topic segment."""

    SWITCH = "switch"
    BUTTON = "button"
    SENSOR = "sensor"
    BINARY_SENSOR = "binary_sensor"


class DeviceClass(StrEnum):
    """Home Assistant device_class hint."""

    SWITCH = "switch"
    MOTION = "motion"
    NONE = "none"


@runtime_checkable
class Commandable(Protocol):
    """Capability receiving raw command payloads from the hub."""

    def on_command(self, payload: str) -> None: ...


StateSetup = Callable[["StateManager"], None]


class SimpleCommand:
    """Commandable wrapping a plain callable."""

    __slots__ = ("_func",)

    def __init__(self, func: Callable[[str], None]) -> None:
        self._func = func

    def on_command(self, payload: str) -> None:
        self._func(payload)


@dataclass(frozen=True, slots=True)
class Device:
    """Identity block shared read-only by every entity derived from it."""

    unique_id: str
    topic_prefix: str
    name: str | None = None
    object_id: str | None = None

    @classmethod
    def from_config(cls, config: ProxyConfig) -> Device:
        return cls(
            unique_id=config.device.unique_id,
            topic_prefix=config.topic.prefix,
            name=config.device.device_name,
            object_id=config.device.object_id,
        )

    @property
    def display_name(self) -> str:
        return self.name or self.unique_id

    @property
    def node_id(self) -> str:
        """Identifier used in topic names."""
        return self.object_id or self.unique_id

    def derive_entity(
        self,
        name: str,
        entity_class: EntityClass,
        device_class: DeviceClass = DeviceClass.NONE,
    ) -> Entity:
        """Create an entity of this device with no capabilities attached."""
        return Entity(name, entity_class, device_class, self)

    entity = derive_entity


def entity_topic_prefix(device: Device, name: str, entity_class: EntityClass) -> str:
    return f"{device.topic_prefix}/{entity_class}/{device.node_id}_{name}"


class Entity:
    """An addressable capability exposed to Home Assistant.

    Built in two phases: required identity at construction, then at most one
    command capability and one stateful setup callback. Assigning either slot
    a second time raises ``CapabilityAlreadySetError``.
    """

    def __init__(
        self,
        name: str,
        entity_class: EntityClass,
        device_class: DeviceClass,
        device: Device,
    ) -> None:
        if not name or any(char in name for char in _FORBIDDEN_TOPIC_CHARS):
            msg = f"Entity name must be a non-empty topic segment, got {name!r}"
            raise ValueError(msg)
        self.name: str = name
        self.entity_class: EntityClass = entity_class
        self.device_class: DeviceClass = device_class
        self.device: Device = device
        self.topic_prefix: str = entity_topic_prefix(device, name, entity_class)
        self._commands: Commandable | None = None
        self._stateful: StateSetup | None = None

    def __repr__(self) -> str:
        return (
            f"Entity(name={self.name!r}, entity_class={self.entity_class.value!r}, "
            f"commands={self.is_commandable}, stateful={self.is_stateful})"
        )

    @property
    def is_commandable(self) -> bool:
        return self._commands is not None

    @property
    def is_stateful(self) -> bool:
        return self._stateful is not None

    def with_stateful(self, setup: StateSetup) -> Entity:
        if self._stateful is not None:
            raise CapabilityAlreadySetError(self.name, "stateful")
        self._stateful = setup
        return self

    def with_commands(self, commands: Commandable | Callable[[str], None]) -> Entity:
        """Attach the command capability; a bare callable is wrapped in SimpleCommand."""
        if self._commands is not None:
            raise CapabilityAlreadySetError(self.name, "commands")
        self._commands = commands if isinstance(commands, Commandable) else SimpleCommand(commands)
        return self

    def get_discovery_topic(self) -> str:
        return f"{self.topic_prefix}/config"

    def get_state_topic(self) -> str | None:
        if self._stateful is None:
            return None
        return f"{self.topic_prefix}/state"

    def get_command_topic(self) -> str | None:
        if self._commands is None:
            return None
        return f"{self.topic_prefix}/set"

    def get_config_payload(self) -> DiscoveryPayload:
        return DiscoveryPayload.for_entity(
            name=self.name,
            device=self.device,
            device_class=self.device_class.value,
            state_topic=self.get_state_topic(),
            command_topic=self.get_command_topic(),
        )

    def on_command(self, payload: str) -> None:
        if self._commands is not None:
            self._commands.on_command(payload)

    def connect_state(self, state: StateManager) -> None:
        if self._stateful is not None:
            self._stateful(state)
