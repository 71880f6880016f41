"""Correlation IDs for following one event through the proxy.

An ID is opened for every inbound MQTT message (origin ``mqtt``) and every
line read from cec-client (origin ``cec``), so a hub command can be traced
into the device write and a status line into the state publish. Log
formatters read the current ID from here.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

# New threads start with an empty context: the cec-client reader and the
# pollers never see the event loop's ID.
_current_id: ContextVar[str | None] = ContextVar("cec_proxy_correlation_id", default=None)


def generate_correlation_id(origin: str | None = None) -> str:
    """Return a fresh ID: 32 hex chars, prefixed with ``"<origin>-"`` when given."""
    token = uuid.uuid4().hex
    return f"{origin}-{token}" if origin else token


def get_correlation_id() -> str | None:
    return _current_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _ = _current_id.set(correlation_id)


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    auto_generate: bool = True,
    origin: str | None = None,
) -> Iterator[str | None]:
    """Run the enclosed block under ``correlation_id``.

    When no ID is passed one is generated (tagged with ``origin``), unless
    ``auto_generate`` is False. The outer ID is back in place on exit, even
    if the block raised.
    """
    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id(origin)
    token = _current_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _current_id.reset(token)


def ensure_correlation_id(origin: str | None = None) -> str:
    """Return the active ID, opening one for the current context if there is none."""
    correlation_id = _current_id.get()
    if correlation_id is None:
        correlation_id = generate_correlation_id(origin)
        _ = _current_id.set(correlation_id)
    return correlation_id
