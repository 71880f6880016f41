"""HDMI-CEC device adapter built on the line process driver."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from cec_proxy.const import DEFAULT_CEC_COMMAND
from cec_proxy.correlation import correlation_context
from cec_proxy.entities.model import SimpleCommand
from cec_proxy.logging_abstraction import get_logger
from cec_proxy.metrics import record_device_line
from cec_proxy.process import cec
from cec_proxy.process.cec import PowerState, parse_power_state
from cec_proxy.process.driver import LineProcessDriver

if TYPE_CHECKING:
    from cec_proxy.mqtt.state import StateManager

__all__ = ["HdmiCecProcess"]

logger = get_logger(__name__)


class HdmiCecProcess:
    """A running ``cec-client`` shared by every entity that talks to the TV.

    Writes go through the driver's lock, so command handlers on the broker
    loop and the power poller thread can use the same instance. Power status
    lines from the reader thread update the cached TV state and, once a
    state manager is attached, are published to the hub.
    """

    lp: str = "hdmi_cec:"

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_CEC_COMMAND,
        driver: LineProcessDriver | None = None,
    ) -> None:
        self.driver: LineProcessDriver = driver or LineProcessDriver(command, name="cec-client")
        self._state_lock = threading.Lock()
        self._state_manager: StateManager | None = None
        self._tv_state: PowerState | None = None

    @property
    def tv_state(self) -> PowerState | None:
        """Last power state reported by the TV, None until one is seen."""
        with self._state_lock:
            return self._tv_state

    def attach_state_manager(self, state_manager: StateManager) -> None:
        with self._state_lock:
            self._state_manager = state_manager
        logger.debug("%s state manager attached for %s", self.lp, state_manager.state_topic)

    def listen(self) -> None:
        """Start consuming cec-client output.

        Raises:
            OutputAlreadyConsumedError: if called twice

        """
        logger.info("%s Listening for cec-client output...", self.lp)
        self.driver.attach_line_consumer(self._on_line)

    def _on_line(self, line: str) -> None:
        lp = f"{self.lp}line:"
        with correlation_context(origin="cec"):
            power_state = parse_power_state(line)
            record_device_line(power_state is not None)
            if power_state is None:
                logger.debug("%s %s", lp, line)
                return

            logger.info("%s parsed power status: %s", lp, power_state, extra={"line": line})
            with self._state_lock:
                self._tv_state = power_state
                state_manager = self._state_manager
            if state_manager is None:
                logger.debug("%s no state manager attached yet, caching %s only", lp, power_state)
                return
            state_manager.update_state(power_state.value)

    def command(self, func: Callable[[HdmiCecProcess, str], None]) -> SimpleCommand:
        """Wrap ``func(process, payload)`` as a command capability bound to this process."""
        return SimpleCommand(lambda payload: func(self, payload))

    def set_tv(self, on: bool) -> None:
        _ = self.driver.send(cec.set_power(on))

    def query_tv_state(self) -> None:
        _ = self.driver.send(cec.query_power())

    def volume_up(self) -> None:
        _ = self.driver.send(cec.volume_up())

    def volume_down(self) -> None:
        _ = self.driver.send(cec.volume_down())

    def mute(self) -> None:
        _ = self.driver.send(cec.mute())

    def select_source(self, source: int) -> None:
        _ = self.driver.send(cec.select_source(source))

    def close(self) -> None:
        self.driver.close()
