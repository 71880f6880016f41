"""
Unit tests for correlation IDs.

Covers ID format, scoping of nested events, and isolation of worker threads.
"""

import re
import threading

import pytest

from cec_proxy import correlation

HEX32 = re.compile(r"^[0-9a-f]{32}$")


@pytest.fixture(autouse=True)
def no_active_id():
    correlation.set_correlation_id(None)
    yield
    correlation.set_correlation_id(None)


class TestIdFormat:
    """Tests for generate_correlation_id"""

    def test_plain_id_is_uuid4_hex(self):
        assert HEX32.match(correlation.generate_correlation_id())

    @pytest.mark.parametrize("origin", ["mqtt", "cec", "app"])
    def test_origin_prefix(self, origin):
        tag, _, token = correlation.generate_correlation_id(origin).partition("-")

        assert tag == origin
        assert HEX32.match(token)

    def test_ids_do_not_repeat(self):
        batch = {correlation.generate_correlation_id("cec") for _ in range(50)}

        assert len(batch) == 50


class TestCorrelationContext:
    """Tests for correlation_context"""

    def test_event_scope(self):
        with correlation.correlation_context(origin="mqtt") as event_id:
            assert event_id.startswith("mqtt-")
            assert correlation.get_correlation_id() == event_id

        assert correlation.get_correlation_id() is None

    def test_explicit_id_wins_over_origin(self):
        with correlation.correlation_context(correlation_id="replayed", origin="mqtt") as event_id:
            assert event_id == "replayed"

    def test_no_generation_requested(self):
        with correlation.correlation_context(auto_generate=False) as event_id:
            assert event_id is None
            assert correlation.get_correlation_id() is None

    def test_inner_event_restores_outer(self):
        with correlation.correlation_context(correlation_id="app-run"):
            with correlation.correlation_context(origin="mqtt") as message_id:
                assert correlation.get_correlation_id() == message_id
            assert correlation.get_correlation_id() == "app-run"

    def test_restored_when_handler_raises(self):
        correlation.set_correlation_id("app-run")

        with pytest.raises(RuntimeError), correlation.correlation_context(origin="mqtt"):
            raise RuntimeError("command handler failed")

        assert correlation.get_correlation_id() == "app-run"

    def test_reader_thread_starts_without_id(self):
        seen = []

        with correlation.correlation_context(correlation_id="loop-event"):
            reader = threading.Thread(target=lambda: seen.append(correlation.get_correlation_id()))
            reader.start()
            reader.join()

        assert seen == [None]


class TestEnsureCorrelationId:
    """Tests for ensure_correlation_id"""

    def test_opens_an_id_when_missing(self):
        opened = correlation.ensure_correlation_id("app")

        assert opened.startswith("app-")
        assert correlation.get_correlation_id() == opened

    def test_keeps_active_id(self):
        correlation.set_correlation_id("mqtt-active")

        assert correlation.ensure_correlation_id("app") == "mqtt-active"
