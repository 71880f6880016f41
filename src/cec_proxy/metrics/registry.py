"""Prometheus metrics registry for the CEC proxy."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    start_http_server,
)

# Metric definitions
cec_proxy_commands_dispatched_total: Final = Counter(  # type: ignore[assignment]
    "cec_proxy_commands_dispatched_total",
    "Total inbound commands dispatched to entities",
    ["entity"],
)

cec_proxy_command_errors_total: Final = Counter(  # type: ignore[assignment]
    "cec_proxy_command_errors_total",
    "Total entity command handlers that raised",
    ["entity"],
)

cec_proxy_undecodable_payloads_total: Final = Counter(  # type: ignore[assignment]
    "cec_proxy_undecodable_payloads_total",
    "Total command payloads dropped because they were not valid UTF-8",
    ["topic"],
)

cec_proxy_state_updates_total: Final = Counter(  # type: ignore[assignment]
    "cec_proxy_state_updates_total",
    "Total state updates published",
    ["entity", "outcome"],
)

cec_proxy_discovery_publish_total: Final = Counter(  # type: ignore[assignment]
    "cec_proxy_discovery_publish_total",
    "Total discovery messages published",
    ["entity", "outcome"],
)

cec_proxy_device_lines_total: Final = Counter(  # type: ignore[assignment]
    "cec_proxy_device_lines_total",
    "Total lines read from the device process",
    ["recognized"],
)

cec_proxy_reconnections_total: Final = Counter(  # type: ignore[assignment]
    "cec_proxy_reconnections_total",
    "Total MQTT reconnection attempts",
    ["reason"],
)

cec_proxy_registered_entities: Final = Gauge(  # type: ignore[assignment]
    "cec_proxy_registered_entities",
    "Number of entities registered with the broker",
)

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_command_dispatched(entity: str) -> None:
    cec_proxy_commands_dispatched_total.labels(entity=entity).inc()  # type: ignore[no-untyped-call]


def record_command_error(entity: str) -> None:
    cec_proxy_command_errors_total.labels(entity=entity).inc()  # type: ignore[no-untyped-call]


def record_undecodable_payload(topic: str) -> None:
    cec_proxy_undecodable_payloads_total.labels(topic=topic).inc()  # type: ignore[no-untyped-call]


def record_state_update(entity: str, outcome: str) -> None:
    """Record a state publish ("published" or "failed")."""
    cec_proxy_state_updates_total.labels(entity=entity, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_discovery_publish(entity: str, outcome: str) -> None:
    """Record a discovery publish ("published" or "failed")."""
    cec_proxy_discovery_publish_total.labels(entity=entity, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_device_line(recognized: bool) -> None:
    cec_proxy_device_lines_total.labels(recognized=str(recognized).lower()).inc()  # type: ignore[no-untyped-call]


def record_reconnection(reason: str) -> None:
    cec_proxy_reconnections_total.labels(reason=reason).inc()  # type: ignore[no-untyped-call]


def record_registered_entities(count: int) -> None:
    cec_proxy_registered_entities.set(count)  # type: ignore[no-untyped-call]
