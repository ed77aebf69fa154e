"""
Data Models for Connection Setup and Outbound Messages.

Defines the small value types passed between the configuration layer,
the connection builder and the sender.
"""
import ssl
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Iterator, Optional

from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties

# Fixed connection parameters for the test harness
DEFAULT_PORT = 8883
KEEPALIVE_SECONDS = 30
RECONNECT_INITIAL_DELAY = 0.1
RECONNECT_MAX_DELAY = 5.0
DEFAULT_TIMEOUT = 10.0


class QoS(IntEnum):
    """Delivery guarantee levels, numerically identical to the MQTT wire values."""
    AT_MOST_ONCE = 0
    AT_LEAST_ONCE = 1
    EXACTLY_ONCE = 2


class Persistence(str, Enum):
    # Only in-memory session state is supported, so nothing leaks between test runs
    NONE = "none"


@dataclass(frozen=True)
class Endpoint:
    """Broker address, supplied once by configuration."""
    host: str
    port: int = DEFAULT_PORT

    @property
    def server_uri(self) -> str:
        # TLS is mandatory, there is no plaintext variant
        return f"ssl://{self.host}:{self.port}"


@dataclass(frozen=True, kw_only=True)
class TLSSettings:
    """
    Transport security options.

    `insecure` disables certificate validation AND hostname verification.
    Insecure, test use only: it must be switched on explicitly and is never
    the default.
    """
    insecure: bool = False
    ca_certs: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class ReconnectPolicy:
    """Exponential backoff bounds for transport-level reconnects."""
    initial_delay: float = RECONNECT_INITIAL_DELAY
    max_delay: float = RECONNECT_MAX_DELAY
    max_attempts: Optional[int] = None  # None retries until the client is closed

    def __post_init__(self):
        if self.initial_delay <= 0 or self.max_delay < self.initial_delay:
            raise ValueError(
                f"Invalid reconnect bounds: initial={self.initial_delay}, max={self.max_delay}"
            )

    def delays(self) -> Iterator[float]:
        """Yields the wait before each reconnect attempt, doubling up to max_delay."""
        delay = self.initial_delay
        attempt = 0
        while self.max_attempts is None or attempt < self.max_attempts:
            yield delay
            attempt += 1
            delay = min(delay * 2, self.max_delay)


@dataclass
class ConnectOptions:
    """
    Mutable connect-phase options.

    The auth strategy and the protocol version adapter each write their own
    fields here before the builder freezes the result into a ConnectRequest.
    """
    keepalive: int = KEEPALIVE_SECONDS
    tls_context: Optional[ssl.SSLContext] = None
    tls_insecure: Optional[bool] = None
    username: Optional[str] = None
    password: Optional[str] = None
    # MQTT 3.1.1 only
    clean_session: Optional[bool] = None
    # MQTT 5 only
    clean_start: Optional[bool] = None
    properties: Optional[Properties] = None


@dataclass(frozen=True, kw_only=True)
class OutboundMessage:
    """
    A single message as it goes on the wire.

    Created fresh for every send and dropped once the publish returns.
    """
    topic: str
    payload: bytes = b""
    qos: QoS = QoS.AT_MOST_ONCE
    content_type: str
    retain: bool = False

    @classmethod
    def build(cls, topic: str, qos: QoS, content_type: str, payload: Optional[bytes] = None) -> "OutboundMessage":
        """
        Raises ValueError for a QoS outside 0..2 and TypeError for a payload
        that is not bytes-like.
        """
        # An absent payload and an empty one are the same message
        if payload is None:
            payload = b""
        elif not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError(f"Payload must be bytes-like or None, got {type(payload).__name__}")
        return cls(topic=topic, payload=bytes(payload), qos=QoS(qos), content_type=content_type)

    def properties(self) -> Properties:
        """The PUBLISH properties, carrying the content type as the only entry."""
        props = Properties(PacketTypes.PUBLISH)
        props.ContentType = self.content_type
        return props

    def to_publish_args(self) -> Dict[str, Any]:
        """Returns dict suitable for client.publish(**args)"""
        return {
            "topic": self.topic,
            "payload": self.payload,
            "qos": int(self.qos),
            "retain": self.retain,
            "properties": self.properties(),
        }
