"""Home Assistant MQTT discovery bridge for HDMI-CEC devices."""

__version__ = "0.3.0"
