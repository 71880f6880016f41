"""Exception hierarchy for the CEC proxy.

Library components (process driver, entity model) raise these to their
callers; the broker loop and the application entry point decide which ones
are fatal.
"""

from __future__ import annotations

from collections.abc import Sequence


class CecProxyError(Exception):
    """Base exception for all proxy errors."""


class ConfigError(CecProxyError):
    """Configuration file missing, unreadable, or invalid.

    Attributes:
        path: Configuration file that failed to load
        reason: Specific failure reason

    """

    def __init__(self, path: str, reason: str) -> None:
        self.path: str = path
        self.reason: str = reason
        super().__init__(f"Invalid configuration in {path}: {reason}")


class ProcessError(CecProxyError):
    """Base class for subprocess driver errors."""


class ProcessSpawnError(ProcessError):
    """The child process could not be started.

    Attributes:
        command: Command line that was attempted

    """

    def __init__(self, command: Sequence[str], reason: str) -> None:
        self.command: tuple[str, ...] = tuple(command)
        self.reason: str = reason
        super().__init__(f"Could not start process {' '.join(self.command)!r}: {reason}")


class ProcessWriteError(ProcessError):
    """Writing to the child process input failed (usually because it exited)."""

    def __init__(self, reason: str) -> None:
        self.reason: str = reason
        super().__init__(f"Process write failed: {reason}")


class OutputAlreadyConsumedError(ProcessError):
    """The process output stream already has a consumer.

    The stream handle moves into the reader thread on the first
    ``attach_line_consumer`` call, so it can only be consumed once.
    """

    def __init__(self) -> None:
        super().__init__("Can not read from output twice! output is already taken!")


class CapabilityAlreadySetError(CecProxyError):
    """An entity capability slot was assigned twice.

    Attributes:
        entity_name: Entity being built
        capability: "commands" or "stateful"

    """

    def __init__(self, entity_name: str, capability: str) -> None:
        self.entity_name: str = entity_name
        self.capability: str = capability
        super().__init__(f"Entity {entity_name!r} already has a {capability} capability")
