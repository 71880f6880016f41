"""Entity-facing handle for publishing state without touching the broker."""

from __future__ import annotations

import asyncio
from concurrent.futures import Future

from cec_proxy.logging_abstraction import get_logger
from cec_proxy.metrics import record_state_update
from cec_proxy.mqtt.transport import Transport

__all__ = ["StateManager"]

logger = get_logger(__name__)


class StateManager:
    """Publish an entity's state to its state topic from any thread.

    Publishes are handed to the broker's event loop, which is the only thread
    that touches the transport. Delivery is best effort: failures are logged
    and dropped, since a newer state will supersede a lost one.
    """

    __slots__ = ("entity_name", "loop", "state_topic", "transport")

    lp: str = "state:"

    def __init__(
        self,
        transport: Transport,
        loop: asyncio.AbstractEventLoop,
        state_topic: str,
        entity_name: str,
    ) -> None:
        self.transport: Transport = transport
        self.loop: asyncio.AbstractEventLoop = loop
        self.state_topic: str = state_topic
        self.entity_name: str = entity_name

    def __repr__(self) -> str:
        return f"StateManager(entity_name={self.entity_name!r}, state_topic={self.state_topic!r})"

    def copy(self) -> StateManager:
        return StateManager(self.transport, self.loop, self.state_topic, self.entity_name)

    def update_state(self, state: str) -> None:
        """Publish ``state`` (the whole payload, e.g. "ON" or "OFF") to the state topic."""
        lp = f"{self.lp}update:"
        if self.loop.is_closed():
            logger.warning("%s event loop closed, dropping state %s for %s", lp, state, self.entity_name)
            record_state_update(self.entity_name, "failed")
            return
        logger.debug("%s %s -> %s", lp, self.state_topic, state)
        future = asyncio.run_coroutine_threadsafe(self._publish(state), self.loop)
        future.add_done_callback(self._log_failure)

    async def _publish(self, state: str) -> None:
        await self.transport.publish(self.state_topic, state, qos=1, retain=False)

    def _log_failure(self, future: Future[None]) -> None:
        if future.cancelled():
            record_state_update(self.entity_name, "failed")
            return
        exc = future.exception()
        if exc is not None:
            record_state_update(self.entity_name, "failed")
            logger.warning(
                "%s unable to publish state for %s: %s",
                self.lp,
                self.entity_name,
                exc,
                extra={"state_topic": self.state_topic},
            )
        else:
            record_state_update(self.entity_name, "published")
