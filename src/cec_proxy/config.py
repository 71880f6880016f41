"""Configuration file loading and validation.

The YAML file is validated into pydantic models; a few MQTT connection
settings can be overridden from the environment so credentials don't have
to live in the file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from cec_proxy.const import (
    CEC_PROXY_MQTT_HOST,
    CEC_PROXY_MQTT_PASS,
    CEC_PROXY_MQTT_PORT,
    CEC_PROXY_MQTT_USER,
    DEFAULT_BIRTH_MSG,
    DEFAULT_CEC_COMMAND,
    DEFAULT_CLIENT_ID,
    DEFAULT_DISCOVERY_PREFIX,
    DEFAULT_UNIQUE_ID,
    DEFAULT_WILL_MSG,
)
from cec_proxy.exceptions import ConfigError
from cec_proxy.logging_abstraction import get_logger

__all__ = [
    "CecConfig",
    "DeviceConfig",
    "MetricsConfig",
    "MqttConfig",
    "MqttCredentials",
    "MqttLastWill",
    "ProxyConfig",
    "TopicConfig",
    "load_config",
]

logger = get_logger(__name__)

QosLevel = Literal[0, 1, 2]


class MqttCredentials(BaseModel):
    username: str
    password: str


class MqttLastWill(BaseModel):
    topic: str
    message: str
    qos: QosLevel = 0
    retain: bool = False


class MqttConfig(BaseModel):
    """Broker connection settings."""

    host: str
    port: int = Field(default=1883, ge=1, le=65535)
    client_id: str = DEFAULT_CLIENT_ID
    keep_alive: float = Field(default=5.0, gt=0)
    clean_session: bool | None = None
    credentials: MqttCredentials | None = None
    last_will: MqttLastWill | None = None
    reconnect_delay: float = Field(default=10.0, gt=0)


class TopicConfig(BaseModel):
    """Discovery prefix and Home Assistant status (birth/will) topic."""

    prefix: str = DEFAULT_DISCOVERY_PREFIX
    status: str | None = None
    birth_message: str = DEFAULT_BIRTH_MSG
    will_message: str = DEFAULT_WILL_MSG

    @model_validator(mode="after")
    def _default_status_topic(self) -> TopicConfig:
        if not self.status:
            self.status = f"{self.prefix}/status"
        return self

    @property
    def status_topic(self) -> str:
        return self.status or f"{self.prefix}/status"


class DeviceConfig(BaseModel):
    unique_id: str = DEFAULT_UNIQUE_ID
    object_id: str | None = None
    device_name: str | None = None


class CecConfig(BaseModel):
    """cec-client process settings."""

    command: list[str] = Field(default_factory=lambda: list(DEFAULT_CEC_COMMAND), min_length=1)
    poll_interval: float = Field(default=10.0, gt=0)
    sources: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_sources(self) -> CecConfig:
        bad = [source for source in self.sources if not 1 <= source <= 0xF]
        if bad:
            msg = f"HDMI sources must be between 1 and 15: {bad}"
            raise ValueError(msg)
        return self


class MetricsConfig(BaseModel):
    enabled: bool = False
    port: int = Field(default=9400, ge=1, le=65535)


class ProxyConfig(BaseModel):
    mqtt: MqttConfig
    topic: TopicConfig = Field(default_factory=TopicConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    cec: CecConfig = Field(default_factory=CecConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


def _apply_env_overrides(data: dict[str, Any]) -> None:
    mqtt_section = data.setdefault("mqtt", {})
    if not isinstance(mqtt_section, dict):
        return
    if CEC_PROXY_MQTT_HOST:
        mqtt_section["host"] = CEC_PROXY_MQTT_HOST
    if CEC_PROXY_MQTT_PORT:
        mqtt_section["port"] = CEC_PROXY_MQTT_PORT
    if CEC_PROXY_MQTT_USER and CEC_PROXY_MQTT_PASS:
        mqtt_section["credentials"] = {"username": CEC_PROXY_MQTT_USER, "password": CEC_PROXY_MQTT_PASS}


def load_config(config_file: Path) -> ProxyConfig:
    """Read and validate a YAML configuration file.

    Args:
        config_file: Path to the YAML configuration file

    Returns:
        The validated configuration

    Raises:
        ConfigError: If the file can not be read, parsed, or validated

    """
    logger.debug("Parsing config file: %s", config_file)
    try:
        with config_file.open() as f:
            config_data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(str(config_file), f"unreadable: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(str(config_file), f"not valid YAML: {exc}") from exc

    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        raise ConfigError(str(config_file), "top level must be a mapping")

    _apply_env_overrides(config_data)

    try:
        config = ProxyConfig.model_validate(config_data)
    except ValidationError as exc:
        raise ConfigError(str(config_file), str(exc)) from exc

    logger.info(
        "Configuration loaded",
        extra={
            "config_path": str(config_file),
            "mqtt_host": config.mqtt.host,
            "discovery_prefix": config.topic.prefix,
            "device": config.device.unique_id,
        },
    )
    return config
