"""Line-oriented subprocess driver.

Owns a child process's stdin/stdout: writes are serialized behind a single
lock so concurrent callers never interleave mid-line, and stdout is handed to
exactly one background reader thread that delivers lines to a callback.
"""

from __future__ import annotations

import subprocess
import threading
from collections.abc import Callable, Sequence
from typing import TextIO, cast

from cec_proxy.exceptions import OutputAlreadyConsumedError, ProcessSpawnError, ProcessWriteError
from cec_proxy.instrumentation import timed
from cec_proxy.logging_abstraction import get_logger

__all__ = ["LineConsumer", "LineProcessDriver"]

logger = get_logger(__name__)

LineConsumer = Callable[[str], None]


class LineProcessDriver:
    """A running child process with a synchronized writer and a single line reader."""

    lp: str = "process:"

    def __init__(self, command: Sequence[str], name: str | None = None) -> None:
        """Spawn ``command`` with piped stdin/stdout.

        Raises:
            ProcessSpawnError: if the process can not be started

        """
        if not command:
            raise ProcessSpawnError(command, "empty command line")
        self.command: tuple[str, ...] = tuple(command)
        self.name: str = name or self.command[0]
        try:
            self._process: subprocess.Popen[str] = subprocess.Popen(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise ProcessSpawnError(self.command, str(exc)) from exc

        self._stdin: TextIO = cast("TextIO", self._process.stdin)
        self._stdout: TextIO | None = self._process.stdout
        self._write_lock = threading.Lock()
        self._consumer_lock = threading.Lock()
        self._reader_thread: threading.Thread | None = None
        logger.info(
            "%s Started %s",
            self.lp,
            self.name,
            extra={"pid": self._process.pid, "command": " ".join(self.command)},
        )

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def is_running(self) -> bool:
        return self._process.poll() is None

    @property
    def output_consumed(self) -> bool:
        return self._stdout is None

    @timed("process_send")
    def send(self, text: str) -> int:
        """Write ``text`` verbatim to the process input and flush it.

        The caller supplies the trailing newline.

        Returns:
            Number of characters written

        Raises:
            ProcessWriteError: if the process input is closed or the pipe is broken

        """
        with self._write_lock:
            try:
                written = self._stdin.write(text)
                self._stdin.flush()
            except (OSError, ValueError) as exc:
                raise ProcessWriteError(str(exc)) from exc
        logger.debug("%s sent %r to %s", self.lp, text, self.name)
        return written

    def attach_line_consumer(self, callback: LineConsumer) -> None:
        """Start the reader thread, delivering each output line to ``callback``.

        Lines arrive in output order with the trailing newline stripped, until
        the process closes its output. An exception raised by ``callback`` is
        logged and the next line is still delivered.

        Raises:
            OutputAlreadyConsumedError: if a consumer was already attached

        """
        with self._consumer_lock:
            if self._stdout is None:
                raise OutputAlreadyConsumedError
            stdout, self._stdout = self._stdout, None

        thread = threading.Thread(
            target=self._read_lines,
            args=(stdout, callback),
            name=f"{self.name}-reader",
            daemon=True,
        )
        self._reader_thread = thread
        thread.start()
        logger.debug("%s reader thread started for %s", self.lp, self.name)

    def _read_lines(self, stdout: TextIO, callback: LineConsumer) -> None:
        lp = f"{self.lp}reader:"
        try:
            for raw_line in stdout:
                line = raw_line.rstrip("\r\n")
                try:
                    callback(line)
                except Exception:
                    logger.exception("%s line consumer failed on %r", lp, line)
        except (OSError, ValueError) as exc:
            # stdout closed underneath us during shutdown
            logger.debug("%s output stream closed: %s", lp, exc)
        logger.info("%s %s closed its output", lp, self.name, extra={"returncode": self._process.poll()})

    def close(self, timeout: float = 5.0) -> None:
        """Close stdin, stop the process and wait for the reader to finish."""
        lp = f"{self.lp}close:"
        with self._write_lock:
            if not self._stdin.closed:
                try:
                    self._stdin.close()
                except OSError as exc:
                    logger.debug("%s closing stdin failed: %s", lp, exc)

        if self._process.poll() is None:
            logger.info("%s Terminating %s", lp, self.name, extra={"pid": self._process.pid})
            self._process.terminate()
            try:
                _ = self._process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("%s %s ignored SIGTERM, killing it", lp, self.name)
                self._process.kill()
                _ = self._process.wait(timeout=timeout)

        with self._consumer_lock:
            if self._stdout is not None:
                self._stdout.close()
                self._stdout = None

        reader = self._reader_thread
        if reader is not None and reader.is_alive() and reader is not threading.current_thread():
            reader.join(timeout=timeout)
