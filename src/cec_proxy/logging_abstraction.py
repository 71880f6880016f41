"""Logging for the CEC proxy.

Modules log through ``get_logger(__name__)``. Output handlers live on the
package logger (``cec_proxy``) and are built once from the CEC_PROXY_LOG_*
settings: human-readable lines to stdout, stderr or a file, JSON lines to a
file, or both. Every line carries the active correlation ID, and the
``extra`` mapping passed to a call is kept as structured context rather than
merged into the record.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing_extensions import override

from cec_proxy.correlation import get_correlation_id

__all__ = [
    "PACKAGE_LOGGER",
    "HumanReadableFormatter",
    "JSONFormatter",
    "ProxyLogger",
    "configure_logging",
    "get_logger",
    "quiet_foreign_loggers",
    "set_package_level",
]

PACKAGE_LOGGER = "cec_proxy"
_OWNED_HANDLER_ATTR = "_cec_proxy_owned"


def _context_of(record: logging.LogRecord) -> Mapping[str, object] | None:
    context = getattr(record, "extra_data", None)
    if isinstance(context, Mapping) and context:
        return context
    return None


def _short_correlation_id(correlation_id: str | None) -> str:
    if not correlation_id:
        return "--------"
    origin, sep, token = correlation_id.partition("-")
    if sep:
        return f"{origin}:{token[:8]}"
    return correlation_id[:8]


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "source": f"{record.module}:{record.lineno}",
            "thread": record.threadName,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        context = _context_of(record)
        if context:
            entry["context"] = dict(context)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``<time> <level> (<thread>) <logger> [<correlation>] > <message> | k=v ...``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s (%(threadName)s) %(name)s [%(correlation)s] > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        record.correlation = _short_correlation_id(get_correlation_id())
        line = super().format(record)
        context = _context_of(record)
        if context:
            line = f"{line} | " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def _open_output(target: str) -> logging.Handler:
    if target == "stdout":
        return logging.StreamHandler(sys.stdout)
    if target == "stderr":
        return logging.StreamHandler(sys.stderr)
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(path, mode="a", encoding="utf-8")


def configure_logging(
    log_format: str | None = None,
    json_file: str | None = None,
    human_output: str | None = None,
    level: int | None = None,
) -> logging.Logger:
    """(Re)build the package logger's handlers.

    Arguments left as None fall back to the CEC_PROXY_LOG_* settings. Handlers
    installed by an earlier call are replaced, never duplicated.

    Args:
        log_format: "human", "json" or "both"
        json_file: Destination of JSON lines
        human_output: "stdout", "stderr" or a file path
        level: Package log level; DEBUG when CEC_PROXY_DEBUG is set, else INFO

    Returns:
        The package logger

    """
    from cec_proxy.const import (  # noqa: PLC0415
        CEC_PROXY_DEBUG,
        CEC_PROXY_LOG_FORMAT,
        CEC_PROXY_LOG_HUMAN_OUTPUT,
        CEC_PROXY_LOG_JSON_FILE,
    )

    log_format = log_format or CEC_PROXY_LOG_FORMAT
    json_file = json_file or CEC_PROXY_LOG_JSON_FILE
    human_output = human_output or CEC_PROXY_LOG_HUMAN_OUTPUT

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in [h for h in package_logger.handlers if getattr(h, _OWNED_HANDLER_ATTR, False)]:
        package_logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = []
    if log_format in ("human", "both"):
        try:
            human_handler = _open_output(human_output)
        except OSError as e:
            print(f"Warning: Failed to open log output {human_output}: {e}", file=sys.stderr)
            human_handler = logging.StreamHandler(sys.stdout)
        human_handler.setFormatter(HumanReadableFormatter())
        handlers.append(human_handler)
    if log_format in ("json", "both") and json_file:
        try:
            json_handler = _open_output(json_file)
        except OSError as e:
            print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)
        else:
            json_handler.setFormatter(JSONFormatter())
            handlers.append(json_handler)

    for handler in handlers:
        setattr(handler, _OWNED_HANDLER_ATTR, True)
        package_logger.addHandler(handler)

    if level is None:
        level = logging.DEBUG if CEC_PROXY_DEBUG else logging.INFO
    package_logger.setLevel(level)
    return package_logger


def _is_configured() -> bool:
    return any(getattr(h, _OWNED_HANDLER_ATTR, False) for h in logging.getLogger(PACKAGE_LOGGER).handlers)


def set_package_level(level: int) -> None:
    """Change the level of every ``cec_proxy.*`` logger at once."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


class ProxyLogger:
    """A stdlib logger whose calls take ``extra`` as structured context.

    Records report the caller's module and line, not this wrapper's.
    """

    __slots__ = ("logger", "name")

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)

    def __repr__(self) -> str:
        return f"ProxyLogger({self.name!r})"

    def _emit(
        self,
        level: int,
        msg: str,
        args: tuple[object, ...],
        extra: Mapping[str, object] | None,
        exc_info: bool = False,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            extra={"extra_data": dict(extra)} if extra else None,
            stacklevel=3,
        )

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._emit(logging.DEBUG, msg, args, extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._emit(logging.INFO, msg, args, extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._emit(logging.WARNING, msg, args, extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._emit(logging.ERROR, msg, args, extra)

    def critical(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._emit(logging.CRITICAL, msg, args, extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, msg, args, extra, exc_info=True)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


def get_logger(name: str) -> ProxyLogger:
    """Return a ProxyLogger for ``name``, setting up output on first use."""
    if not _is_configured():
        _ = configure_logging()
    return ProxyLogger(name)


def quiet_foreign_loggers() -> None:
    """Clamp third-party MQTT loggers so they only report problems."""
    for name, level in (("aiomqtt", logging.WARNING), ("mqtt", logging.ERROR)):
        foreign = logging.getLogger(name)
        foreign.setLevel(level)
        foreign.propagate = False
