"""MQTT side of the proxy: transport, broker and per-entity state publishing."""

from cec_proxy.mqtt.broker import BrokerState, HaBroker
from cec_proxy.mqtt.state import StateManager
from cec_proxy.mqtt.transport import MqttTransport, Transport

__all__ = ["BrokerState", "HaBroker", "MqttTransport", "StateManager", "Transport"]
