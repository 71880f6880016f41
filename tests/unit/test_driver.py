"""
Unit tests for LineProcessDriver.

These spawn small POSIX utilities (cat, printf, sh) as stand-ins for cec-client.
"""

import threading

import pytest

from cec_proxy.exceptions import OutputAlreadyConsumedError, ProcessSpawnError, ProcessWriteError
from cec_proxy.process.driver import LineProcessDriver

WAIT_SECONDS = 5.0


class LineCollector:
    """Line consumer that signals once ``expected`` lines have arrived."""

    def __init__(self, expected: int) -> None:
        self.lines: list[str] = []
        self.expected = expected
        self.done = threading.Event()

    def __call__(self, line: str) -> None:
        self.lines.append(line)
        if len(self.lines) >= self.expected:
            self.done.set()


@pytest.fixture
def cat_driver():
    driver = LineProcessDriver(["cat"], name="cat")
    yield driver
    driver.close(timeout=2.0)


class TestSpawn:
    """Tests for process startup"""

    def test_missing_executable(self):
        with pytest.raises(ProcessSpawnError) as exc_info:
            _ = LineProcessDriver(["definitely-not-a-real-binary-cec"])

        assert exc_info.value.command == ("definitely-not-a-real-binary-cec",)

    def test_empty_command(self):
        with pytest.raises(ProcessSpawnError, match="empty command"):
            _ = LineProcessDriver([])

    def test_running_process(self, cat_driver):
        assert cat_driver.is_running
        assert cat_driver.pid > 0
        assert cat_driver.name == "cat"
        assert not cat_driver.output_consumed


class TestLineConsumer:
    """Tests for attach_line_consumer"""

    def test_lines_arrive_in_order_without_newlines(self, cat_driver):
        collector = LineCollector(expected=3)
        cat_driver.attach_line_consumer(collector)

        _ = cat_driver.send("power status: on\n")
        _ = cat_driver.send("noise\r\n")
        _ = cat_driver.send("power status: standby\n")

        assert collector.done.wait(WAIT_SECONDS)
        assert collector.lines == ["power status: on", "noise", "power status: standby"]

    def test_second_consumer_rejected(self, cat_driver):
        first = LineCollector(expected=1)
        second = LineCollector(expected=1)
        cat_driver.attach_line_consumer(first)

        assert cat_driver.output_consumed
        with pytest.raises(OutputAlreadyConsumedError, match="output is already taken"):
            cat_driver.attach_line_consumer(second)

        _ = cat_driver.send("power status: on\n")

        assert first.done.wait(WAIT_SECONDS)
        assert first.lines == ["power status: on"]
        assert second.lines == []

    def test_consumer_exception_does_not_stop_reader(self, cat_driver):
        collector = LineCollector(expected=2)

        def flaky(line: str) -> None:
            collector(line)
            if line == "boom":
                raise RuntimeError(line)

        cat_driver.attach_line_consumer(flaky)
        _ = cat_driver.send("boom\n")
        _ = cat_driver.send("after\n")

        assert collector.done.wait(WAIT_SECONDS)
        assert collector.lines == ["boom", "after"]

    def test_output_before_attach_is_buffered(self):
        driver = LineProcessDriver(["printf", "power status: on\\nlast"])
        try:
            collector = LineCollector(expected=2)
            driver.attach_line_consumer(collector)

            assert collector.done.wait(WAIT_SECONDS)
            assert collector.lines == ["power status: on", "last"]
        finally:
            driver.close(timeout=2.0)


class TestSend:
    """Tests for send"""

    def test_send_returns_characters_written(self, cat_driver):
        assert cat_driver.send("pow 0.0.0.0\n") == len("pow 0.0.0.0\n")

    def test_concurrent_sends_do_not_interleave(self, cat_driver):
        writers = 8
        per_writer = 25
        collector = LineCollector(expected=writers * per_writer)
        cat_driver.attach_line_consumer(collector)

        def write(index: int) -> None:
            for _ in range(per_writer):
                _ = cat_driver.send(f"writer-{index}-" + "x" * 200 + "\n")

        threads = [threading.Thread(target=write, args=(i,)) for i in range(writers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert collector.done.wait(WAIT_SECONDS)
        expected = {f"writer-{i}-" + "x" * 200 for i in range(writers)}
        assert set(collector.lines) == expected
        assert len(collector.lines) == writers * per_writer

    def test_send_after_close_raises(self, cat_driver):
        cat_driver.close(timeout=2.0)

        with pytest.raises(ProcessWriteError):
            _ = cat_driver.send("on 0.0.0.0\n")

    def test_send_after_exit_raises(self):
        driver = LineProcessDriver(["sh", "-c", "exit 0"])
        try:
            _ = driver._process.wait(timeout=WAIT_SECONDS)
            with pytest.raises(ProcessWriteError):
                _ = driver.send("on 0.0.0.0\n")
        finally:
            driver.close(timeout=2.0)


class TestClose:
    """Tests for close"""

    def test_close_stops_process_and_reader(self, cat_driver):
        cat_driver.attach_line_consumer(lambda _line: None)
        reader = cat_driver._reader_thread

        cat_driver.close(timeout=2.0)

        assert not cat_driver.is_running
        assert reader is not None
        assert not reader.is_alive()

    def test_close_twice(self, cat_driver):
        cat_driver.close(timeout=2.0)
        cat_driver.close(timeout=2.0)

        assert not cat_driver.is_running
