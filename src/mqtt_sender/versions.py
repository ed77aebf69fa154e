"""
Protocol Version Adapter.

The MQTT version is fixed when the transport client is created and decides
which connect options are legal. Each version maps through one pair of
rules: `create_protocol` (create time) and `apply_connect_options`
(connect time). Supporting another version means adding a variant here
and a branch to both functions.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from aiomqtt import ProtocolVersion
from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

from mqtt_sender.models import ConnectOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class V5Options:
    """CONNECT properties that only exist in MQTT 5."""
    session_expiry_interval: int = 0
    receive_maximum: Optional[int] = None
    maximum_packet_size: Optional[int] = None
    user_properties: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class V3_1_1:
    """MQTT 3.1.1."""


@dataclass(frozen=True)
class V5:
    """MQTT 5, with its version-specific connect options."""
    options: V5Options = field(default_factory=V5Options)


MqttVersion = Union[V3_1_1, V5]


def create_protocol(version: MqttVersion) -> ProtocolVersion:
    """The wire protocol constant the transport client must be created with."""
    if isinstance(version, V3_1_1):
        return ProtocolVersion.V311
    if isinstance(version, V5):
        return ProtocolVersion.V5
    raise TypeError(f"Unknown MQTT version: {type(version).__name__}")


def apply_connect_options(version: MqttVersion, options: ConnectOptions) -> None:
    """
    Writes the version-specific connect fields.

    3.1.1 uses a clean session and has no properties; 5 uses clean start
    and CONNECT properties. The two sets are never mixed.
    """
    if isinstance(version, V3_1_1):
        options.clean_session = True
        options.clean_start = None
        options.properties = None
        return
    if isinstance(version, V5):
        options.clean_session = None
        options.clean_start = True
        options.properties = _connect_properties(version.options)
        return
    raise TypeError(f"Unknown MQTT version: {type(version).__name__}")


def _connect_properties(v5_options: V5Options) -> Properties:
    props = Properties(PacketTypes.CONNECT)
    props.SessionExpiryInterval = v5_options.session_expiry_interval
    if v5_options.receive_maximum is not None:
        props.ReceiveMaximum = v5_options.receive_maximum
    if v5_options.maximum_packet_size is not None:
        props.MaximumPacketSize = v5_options.maximum_packet_size
    if v5_options.user_properties:
        props.UserProperty = list(v5_options.user_properties)
    logger.debug(f"MQTT 5 connect properties: {props}")
    return props
