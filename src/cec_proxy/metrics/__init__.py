"""Metrics module."""

from .registry import (
    record_command_dispatched,
    record_command_error,
    record_device_line,
    record_discovery_publish,
    record_reconnection,
    record_registered_entities,
    record_state_update,
    record_undecodable_payload,
    start_metrics_server,
)

__all__ = [
    "record_command_dispatched",
    "record_command_error",
    "record_device_line",
    "record_discovery_publish",
    "record_reconnection",
    "record_registered_entities",
    "record_state_update",
    "record_undecodable_payload",
    "start_metrics_server",
]
