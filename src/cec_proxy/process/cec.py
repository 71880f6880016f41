"""cec-client vocabulary.

Translates ``cec-client`` status lines into power states, and abstract
commands into the request strings ``cec-client`` reads on stdin. Everything
here is a pure function over strings.
"""

from __future__ import annotations

from enum import StrEnum

__all__ = [
    "POWER_STATUS_PREFIX",
    "CecCommand",
    "PowerState",
    "mute",
    "parse_power_state",
    "query_power",
    "select_source",
    "set_power",
    "volume_down",
    "volume_up",
]

POWER_STATUS_PREFIX = "power status:"
TV_ADDRESS = "0.0.0.0"
MAX_SOURCE = 0xF


class PowerState(StrEnum):
    """Power state tokens, published verbatim as MQTT switch state."""

    ON = "ON"
    OFF = "OFF"
    UNKNOWN = "UNKNOWN"


_POWER_STATUS_MAP: dict[str, PowerState] = {
    "on": PowerState.ON,
    "standby": PowerState.OFF,
}


class CecCommand(StrEnum):
    """Fixed cec-client requests, newline terminated."""

    POWER_ON = f"on {TV_ADDRESS}\n"
    STANDBY = f"standby {TV_ADDRESS}\n"
    POWER_QUERY = f"pow {TV_ADDRESS}\n"
    VOLUME_UP = "volup\n"
    VOLUME_DOWN = "voldown\n"
    MUTE = "mute\n"


def parse_power_state(line: str) -> PowerState | None:
    """Parse a ``power status: <state>`` line.

    Returns None for any line without the prefix; cec-client prints plenty of
    unrelated output. A recognized prefix with an unknown state (for example
    "in transition from standby to on") yields ``PowerState.UNKNOWN``.
    """
    if not line.startswith(POWER_STATUS_PREFIX):
        return None
    _, _, state_string = line.partition(POWER_STATUS_PREFIX)
    return _POWER_STATUS_MAP.get(state_string.strip(), PowerState.UNKNOWN)


def set_power(on: bool) -> str:
    return CecCommand.POWER_ON.value if on else CecCommand.STANDBY.value


def query_power() -> str:
    return CecCommand.POWER_QUERY.value


def volume_up() -> str:
    return CecCommand.VOLUME_UP.value


def volume_down() -> str:
    return CecCommand.VOLUME_DOWN.value


def mute() -> str:
    return CecCommand.MUTE.value


def select_source(source: int) -> str:
    """Broadcast Active Source (opcode 0x82) for HDMI input ``source``.

    The physical address of input N on the TV is N.0.0.0.

    Raises:
        ValueError: if ``source`` is outside 1-15

    """
    if not 1 <= source <= MAX_SOURCE:
        msg = f"HDMI source must be between 1 and {MAX_SOURCE}, got {source}"
        raise ValueError(msg)
    return f"tx 4F:82:{source:X}0:00\n"
