"""Publish the active media session of a host to an MQTT broker."""

__version__ = "0.4.0"
