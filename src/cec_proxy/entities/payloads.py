"""Home Assistant MQTT discovery payload schema."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from cec_proxy.const import ORIGIN_STRUCT

if TYPE_CHECKING:
    from cec_proxy.entities.model import Device

__all__ = ["DevicePayload", "DiscoveryPayload", "OriginPayload"]


class DevicePayload(BaseModel):
    """Device registry block shared by every entity of a device."""

    name: str
    identifiers: list[str]

    @classmethod
    def from_device(cls, device: Device) -> DevicePayload:
        return cls(name=device.display_name, identifiers=[device.unique_id])


class OriginPayload(BaseModel):
    """Software that published the discovery message."""

    name: str = ORIGIN_STRUCT["name"]
    sw_version: str = ORIGIN_STRUCT["sw_version"]
    support_url: str = ORIGIN_STRUCT["support_url"]


class DiscoveryPayload(BaseModel):
    """Entity descriptor published to ``<topic_prefix>/config``.

    Optional fields left as None are dropped on serialization, and a
    device_class of "none" is never sent.
    """

    name: str
    state_topic: str | None = None
    command_topic: str | None = None
    device_class: str | None = None
    unique_id: str
    device: DevicePayload
    origin: OriginPayload = Field(default_factory=OriginPayload)

    @classmethod
    def for_entity(
        cls,
        name: str,
        device: Device,
        device_class: str | None = None,
        state_topic: str | None = None,
        command_topic: str | None = None,
    ) -> DiscoveryPayload:
        return cls(
            name=name,
            state_topic=state_topic,
            command_topic=command_topic,
            device_class=None if device_class in (None, "none") else device_class,
            unique_id=f"{device.unique_id}_{name}",
            device=DevicePayload.from_device(device),
        )

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)
