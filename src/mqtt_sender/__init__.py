"""
mqtt_sender

This package provides a one-shot, asynchronous MQTT publisher for test
harnesses: build one client, connect once over TLS, publish once and
wait for the broker to acknowledge it.
"""
from mqtt_sender.auth import Auth, NoAuth, UsernamePassword, X509Certificate
from mqtt_sender.errors import (
    ClientCreationError,
    ConnectError,
    PublishError,
    SenderError,
    UnsupportedConfigurationError,
)
from mqtt_sender.models import Endpoint, QoS, ReconnectPolicy, TLSSettings
from mqtt_sender.sender import MqttSender
from mqtt_sender.versions import MqttVersion, V3_1_1, V5, V5Options

__version__ = "0.1.0"

__all__ = [
    "Auth",
    "ClientCreationError",
    "ConnectError",
    "Endpoint",
    "MqttSender",
    "MqttVersion",
    "NoAuth",
    "PublishError",
    "QoS",
    "ReconnectPolicy",
    "SenderError",
    "TLSSettings",
    "UnsupportedConfigurationError",
    "UsernamePassword",
    "V3_1_1",
    "V5",
    "V5Options",
    "X509Certificate",
]
