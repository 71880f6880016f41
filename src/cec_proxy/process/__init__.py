"""cec-client subprocess handling: line driver, vocabulary, device adapter."""

from .cec import CecCommand, PowerState, parse_power_state
from .driver import LineProcessDriver
from .hdmi_cec import HdmiCecProcess
from .poller import PeriodicPoller

__all__ = [
    "CecCommand",
    "HdmiCecProcess",
    "LineProcessDriver",
    "PeriodicPoller",
    "PowerState",
    "parse_power_state",
]
