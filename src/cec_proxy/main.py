from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from functools import partial
from pathlib import Path

import aiomqtt
import dotenv
import uvloop

from cec_proxy.config import CecConfig, ProxyConfig, load_config
from cec_proxy.const import (
    CEC_PROXY_CONFIG_FILE_PATH,
    CEC_PROXY_DEBUG,
    CEC_PROXY_VERSION,
    MQTT_BROKER_TASK_NAME,
)
from cec_proxy.correlation import correlation_context, ensure_correlation_id
from cec_proxy.entities.model import Device, DeviceClass, Entity, EntityClass
from cec_proxy.exceptions import ConfigError, ProcessSpawnError
from cec_proxy.logging_abstraction import get_logger, quiet_foreign_loggers, set_package_level
from cec_proxy.metrics import start_metrics_server
from cec_proxy.mqtt.broker import HaBroker
from cec_proxy.mqtt.state import StateManager
from cec_proxy.process.hdmi_cec import HdmiCecProcess
from cec_proxy.process.poller import PeriodicPoller

logger = get_logger(__name__)

TV_ENTITY_NAME = "tv"
TV_POLLER_NAME = "tv-power-poller"


def build_entities(
    device: Device,
    process: HdmiCecProcess,
    cec_config: CecConfig,
    pollers: list[PeriodicPoller],
) -> list[Entity]:
    """Describe the TV as Home Assistant entities backed by ``process``.

    The power switch publishes state from cec-client power status lines.
    A poller that asks the TV for its power status is started once the
    switch has been given a state manager, and is appended to ``pollers``.
    """

    def tv_power(proc: HdmiCecProcess, payload: str) -> None:
        proc.set_tv(payload == "ON")

    def tv_state(state_manager: StateManager) -> None:
        process.attach_state_manager(state_manager)
        poller = PeriodicPoller(TV_POLLER_NAME, process.query_tv_state, cec_config.poll_interval)
        pollers.append(poller)
        poller.start()

    entities = [
        device.derive_entity(TV_ENTITY_NAME, EntityClass.SWITCH, DeviceClass.SWITCH)
        .with_stateful(tv_state)
        .with_commands(process.command(tv_power)),
        device.derive_entity("volume_up", EntityClass.BUTTON).with_commands(lambda _: process.volume_up()),
        device.derive_entity("volume_down", EntityClass.BUTTON).with_commands(lambda _: process.volume_down()),
        device.derive_entity("mute", EntityClass.BUTTON).with_commands(lambda _: process.mute()),
    ]
    for source in cec_config.sources:
        entities.append(
            device.derive_entity(f"source_{source}", EntityClass.BUTTON).with_commands(
                partial(_select_source, process, source),
            ),
        )
    return entities


def _select_source(process: HdmiCecProcess, source: int, _payload: str) -> None:
    process.select_source(source)


class CecProxyController:
    """Owns the cec-client process, the broker and the pollers for one run."""

    lp: str = "CecProxy:"

    def __init__(self, config: ProxyConfig, loop: asyncio.AbstractEventLoop) -> None:
        self.config: ProxyConfig = config
        self.loop: asyncio.AbstractEventLoop = loop
        self.process: HdmiCecProcess | None = None
        self.broker: HaBroker | None = None
        self.broker_task: asyncio.Task[None] | None = None
        self.main_task: asyncio.Task[object] | None = None
        self.pollers: list[PeriodicPoller] = []
        self._stopping: bool = False

        logger.info(" Initializing CEC proxy", extra={"version": CEC_PROXY_VERSION})
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, partial(self.signal_handler, sig))
        logger.debug("Signal handlers configured for SIGINT & SIGTERM")

    def signal_handler(self, signum: int) -> None:
        logger.info("%s Caught signal %s, shutting down...", self.lp, signal.Signals(signum).name)
        self.stop()

    async def start(self) -> None:
        """Start cec-client, connect to MQTT, register entities and run the broker.

        Raises:
            ProcessSpawnError: if cec-client can not be started
            aiomqtt.MqttError: if the first connection to the broker fails

        """
        lp = f"{self.lp}start:"
        if self._stopping:
            logger.warning("%s shutdown already requested, not starting", lp)
            return
        self.main_task = asyncio.current_task()
        _ = ensure_correlation_id()

        if self.config.metrics.enabled:
            start_metrics_server(self.config.metrics.port)

        self.process = HdmiCecProcess(self.config.cec.command)
        try:
            self.process.listen()
            self.broker = HaBroker.from_config(self.config)
            try:
                await self.broker.connect()
            except aiomqtt.MqttError as exc:
                logger.error("%s unable to connect to MQTT broker %s: %s", lp, self.config.mqtt.host, exc)
                raise

            device = Device.from_config(self.config)
            for entity in build_entities(device, self.process, self.config.cec, self.pollers):
                await self.broker.add_entity(entity)
            logger.info("%s %d entities registered", lp, len(self.broker.entities))

            self.broker_task = asyncio.Task(self.broker.run(), name=MQTT_BROKER_TASK_NAME)
            await self.broker_task
        finally:
            if self.broker is not None:
                await self.broker.close()
            await asyncio.to_thread(self._release)

    def stop(self) -> None:
        """Request shutdown. Safe to call twice.

        While ``start()`` is running its task is cancelled and ``start()``
        releases the pollers and cec-client on the way out. Otherwise they
        are released here.
        """
        if self._stopping:
            return
        self._stopping = True
        logger.info("%s Shutting down CEC proxy...", self.lp)
        task = self.main_task
        if task is not None and not task.done() and task.get_loop().is_running():
            logger.debug("%s Cancelling task: %s", self.lp, task.get_name())
            _ = task.cancel()
            return
        self._release()

    def _release(self) -> None:
        while self.pollers:
            self.pollers.pop().stop()
        process, self.process = self.process, None
        if process is not None:
            process.close()


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="HDMI-CEC to Home Assistant MQTT proxy")
    _ = parser.add_argument(
        "-c",
        "--config",
        help="Path to the YAML configuration file",
        default=Path(CEC_PROXY_CONFIG_FILE_PATH),
        type=Path,
    )
    _ = parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    args = parser.parse_args(argv)

    if args.debug:
        set_package_level(logging.DEBUG)
        logger.info("Debug mode enabled via CLI argument")

    if args.env:
        env_path = args.env.expanduser().resolve()
        if not env_path.exists():
            logger.error("Environment file not found", extra={"path": str(env_path)})
        elif dotenv.load_dotenv(env_path, override=True):
            logger.info(" Environment variables loaded", extra={"source": str(env_path)})
        else:
            logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})

    return args


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CEC proxy. Returns the process exit code."""
    with correlation_context(origin="app"):
        logger.info("Starting CEC proxy", extra={"version": CEC_PROXY_VERSION})
        args = parse_cli(argv)

        if CEC_PROXY_DEBUG:
            logger.info("Debug logging enabled via configuration")
            set_package_level(logging.DEBUG)
        quiet_foreign_loggers()

        config_file = args.config.expanduser().resolve()
        try:
            config = load_config(config_file)
        except ConfigError as exc:
            logger.error(" Unable to load configuration: %s", exc, extra={"config_path": exc.path})
            return 1

        loop = uvloop.new_event_loop()
        asyncio.set_event_loop(loop)
        controller = CecProxyController(config, loop)
        exit_code = 0
        try:
            loop.run_until_complete(controller.start())
        except asyncio.CancelledError:
            logger.info("CEC proxy cancelled, shutting down...")
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        except ProcessSpawnError as exc:
            logger.error(" Unable to start cec-client: %s", exc)
            exit_code = 1
        except aiomqtt.MqttError:
            exit_code = 1
        else:
            logger.info(" CEC proxy stopped gracefully")
        finally:
            controller.stop()
            if not loop.is_closed():
                loop.close()
            logger.info("CEC proxy shutdown complete")
        return exit_code
