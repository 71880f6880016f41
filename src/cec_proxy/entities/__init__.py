"""Home Assistant entity model and discovery payloads."""

from .model import Commandable, Device, DeviceClass, Entity, EntityClass, SimpleCommand, StateSetup
from .payloads import DevicePayload, DiscoveryPayload, OriginPayload

__all__ = [
    "Commandable",
    "Device",
    "DeviceClass",
    "DevicePayload",
    "DiscoveryPayload",
    "Entity",
    "EntityClass",
    "OriginPayload",
    "SimpleCommand",
    "StateSetup",
]
