"""Unit tests for metrics registry."""

from __future__ import annotations

from unittest.mock import patch

from prometheus_client import REGISTRY

from cec_proxy.metrics import registry


def sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestCommandMetrics:
    """Tests for command dispatch metrics."""

    def test_record_command_dispatched(self) -> None:
        before = sample("cec_proxy_commands_dispatched_total", {"entity": "metrics-tv"})
        registry.record_command_dispatched("metrics-tv")
        assert sample("cec_proxy_commands_dispatched_total", {"entity": "metrics-tv"}) == before + 1

    def test_record_command_error(self) -> None:
        before = sample("cec_proxy_command_errors_total", {"entity": "metrics-tv"})
        registry.record_command_error("metrics-tv")
        assert sample("cec_proxy_command_errors_total", {"entity": "metrics-tv"}) == before + 1

    def test_record_undecodable_payload(self) -> None:
        labels = {"topic": "homeassistant/switch/x/set"}
        before = sample("cec_proxy_undecodable_payloads_total", labels)
        registry.record_undecodable_payload("homeassistant/switch/x/set")
        assert sample("cec_proxy_undecodable_payloads_total", labels) == before + 1


class TestPublishMetrics:
    """Tests for state and discovery publish metrics."""

    def test_record_state_update(self) -> None:
        labels = {"entity": "metrics-tv", "outcome": "published"}
        before = sample("cec_proxy_state_updates_total", labels)
        registry.record_state_update("metrics-tv", "published")
        assert sample("cec_proxy_state_updates_total", labels) == before + 1

    def test_record_discovery_publish(self) -> None:
        labels = {"entity": "metrics-tv", "outcome": "failed"}
        before = sample("cec_proxy_discovery_publish_total", labels)
        registry.record_discovery_publish("metrics-tv", "failed")
        assert sample("cec_proxy_discovery_publish_total", labels) == before + 1

    def test_record_registered_entities(self) -> None:
        registry.record_registered_entities(4)
        assert sample("cec_proxy_registered_entities") == 4


class TestDeviceAndConnectionMetrics:
    """Tests for device line and reconnection metrics."""

    def test_record_device_line(self) -> None:
        before_true = sample("cec_proxy_device_lines_total", {"recognized": "true"})
        before_false = sample("cec_proxy_device_lines_total", {"recognized": "false"})

        registry.record_device_line(True)
        registry.record_device_line(False)
        registry.record_device_line(False)

        assert sample("cec_proxy_device_lines_total", {"recognized": "true"}) == before_true + 1
        assert sample("cec_proxy_device_lines_total", {"recognized": "false"}) == before_false + 2

    def test_record_reconnection(self) -> None:
        before = sample("cec_proxy_reconnections_total", {"reason": "connection_lost"})
        registry.record_reconnection("connection_lost")
        assert sample("cec_proxy_reconnections_total", {"reason": "connection_lost"}) == before + 1


class TestMetricsServer:
    """Tests for start_metrics_server."""

    def test_start_is_idempotent(self) -> None:
        with (
            patch.object(registry, "start_http_server") as start_http_server,
            patch.dict(registry._server_state, {"started": False}),
        ):
            registry.start_metrics_server(9401)
            registry.start_metrics_server(9401)

        start_http_server.assert_called_once_with(9401)
