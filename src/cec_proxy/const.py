import os

from cec_proxy import __version__

__all__ = [
    "CEC_PROXY_CONFIG_FILE_PATH",
    "CEC_PROXY_DEBUG",
    "CEC_PROXY_LOG_FORMAT",
    "CEC_PROXY_LOG_HUMAN_OUTPUT",
    "CEC_PROXY_LOG_JSON_FILE",
    "CEC_PROXY_MQTT_HOST",
    "CEC_PROXY_MQTT_PASS",
    "CEC_PROXY_MQTT_PORT",
    "CEC_PROXY_MQTT_USER",
    "CEC_PROXY_NAME",
    "CEC_PROXY_PERF_THRESHOLD_MS",
    "CEC_PROXY_PERF_TRACKING",
    "CEC_PROXY_VERSION",
    "DEFAULT_BIRTH_MSG",
    "DEFAULT_CEC_COMMAND",
    "DEFAULT_CLIENT_ID",
    "DEFAULT_DISCOVERY_PREFIX",
    "DEFAULT_UNIQUE_ID",
    "DEFAULT_WILL_MSG",
    "MQTT_BROKER_TASK_NAME",
    "ORIGIN_STRUCT",
    "SRC_REPO_URL",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")

CEC_PROXY_NAME: str = "ha-cec-proxy"
CEC_PROXY_VERSION: str = __version__
SRC_REPO_URL: str = "https://github.com/o080o/ha-cec-proxy"

DEFAULT_CLIENT_ID: str = "hdmi-cec-proxy"
DEFAULT_UNIQUE_ID: str = "hdmi-device"
DEFAULT_DISCOVERY_PREFIX: str = "homeassistant"
DEFAULT_BIRTH_MSG: str = "online"
DEFAULT_WILL_MSG: str = "offline"
DEFAULT_CEC_COMMAND: tuple[str, ...] = ("cec-client", "-d", "1")
MQTT_BROKER_TASK_NAME = "HaBroker_RUN"

CEC_PROXY_CONFIG_FILE_PATH: str = os.environ.get("CEC_PROXY_CONFIG_FILE", "config.yaml")

# Override values from the config file when set
CEC_PROXY_MQTT_HOST = os.environ.get("CEC_PROXY_MQTT_HOST")
CEC_PROXY_MQTT_PORT = os.environ.get("CEC_PROXY_MQTT_PORT")
CEC_PROXY_MQTT_USER = os.environ.get("CEC_PROXY_MQTT_USER")
CEC_PROXY_MQTT_PASS = os.environ.get("CEC_PROXY_MQTT_PASS")

CEC_PROXY_DEBUG = os.environ.get("CEC_PROXY_DEBUG", "0").casefold() in YES_ANSWER

ORIGIN_STRUCT = {
    "name": CEC_PROXY_NAME,
    "sw_version": CEC_PROXY_VERSION,
    "support_url": SRC_REPO_URL,
}

# Logging Configuration
CEC_PROXY_LOG_FORMAT: str = os.environ.get("CEC_PROXY_LOG_FORMAT", "human")  # "json", "human", or "both"
CEC_PROXY_LOG_JSON_FILE: str = os.environ.get("CEC_PROXY_LOG_JSON_FILE", "/var/log/cec_proxy.json")
CEC_PROXY_LOG_HUMAN_OUTPUT: str = os.environ.get("CEC_PROXY_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

# Performance Instrumentation
CEC_PROXY_PERF_TRACKING: bool = os.environ.get("CEC_PROXY_PERF_TRACKING", "true").casefold() in YES_ANSWER
_perf_threshold = os.environ.get("CEC_PROXY_PERF_THRESHOLD_MS", "100")
CEC_PROXY_PERF_THRESHOLD_MS: int = int(_perf_threshold) if _perf_threshold and _perf_threshold.isdigit() else 100
