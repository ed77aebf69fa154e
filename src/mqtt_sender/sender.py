"""
MQTT Sender: build one client, connect once, publish and wait for the ack.

Typical use from a test:

    sender = await MqttSender.connect(Endpoint("localhost", 8883), NoAuth(), V5(),
                                      tls=TLSSettings(insecure=True))
    try:
        await sender.send("test/topic", QoS.AT_LEAST_ONCE, "application/json", b'{"a":1}')
    finally:
        await sender.close()
"""
import logging
import uuid
from typing import Callable, Optional

from aiomqtt import MqttError

from mqtt_sender.auth import Auth
from mqtt_sender.builder import build_connect_request
from mqtt_sender.connection import BrokerConnection
from mqtt_sender.errors import PublishError
from mqtt_sender.models import (
    DEFAULT_TIMEOUT,
    KEEPALIVE_SECONDS,
    Endpoint,
    OutboundMessage,
    QoS,
    ReconnectPolicy,
    TLSSettings,
)
from mqtt_sender.versions import MqttVersion

logger = logging.getLogger(__name__)


def random_client_id() -> str:
    return str(uuid.uuid4())


class MqttSender:
    client_id: str
    _connection: BrokerConnection

    """
    A connected MQTT client that publishes single messages.

    Instances only come from `MqttSender.connect`, so an MqttSender is
    always connected (or was, until the broker went away for good).
    Concurrent `send` calls are not serialized; await each one when the
    order on the wire matters.
    """
    def __init__(self, client_id: str, connection: BrokerConnection):
        self.client_id = client_id
        self._connection = connection

    @classmethod
    async def connect(
        cls,
        endpoint: Endpoint,
        auth: Auth,
        version: MqttVersion,
        *,
        tls: TLSSettings = TLSSettings(),
        identifier_factory: Callable[[], str] = random_client_id,
        reconnect: ReconnectPolicy = ReconnectPolicy(),
        keepalive: int = KEEPALIVE_SECONDS,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "MqttSender":
        """
        Builds the client and connects it to `endpoint`.

        Raises UnsupportedConfigurationError (before any network I/O),
        ClientCreationError or ConnectError. No instance is returned on
        failure.
        """
        client_id = identifier_factory()
        request = build_connect_request(
            endpoint,
            client_id,
            auth,
            version,
            tls=tls,
            keepalive=keepalive,
            reconnect=reconnect,
            timeout=timeout,
        )
        connection = BrokerConnection(request)
        await connection.open()
        return cls(client_id, connection)

    async def send(self, topic: str, qos: QoS, content_type: str, payload: Optional[bytes] = None):
        """
        Publishes one message and waits for the delivery acknowledgement.

        `payload=None` sends an empty payload. The content type travels as
        the message's only property. Raises PublishError if this publish
        fails; the sender itself stays usable.

        Arguments are checked before anything is published: a `qos` outside
        0..2 raises ValueError and a payload that is not bytes-like raises
        TypeError. Neither is a PublishError.
        """
        message = OutboundMessage.build(topic, qos, content_type, payload)
        logger.debug(
            f"Publishing {len(message.payload)} bytes to '{message.topic}' "
            f"(qos={message.qos.value}, content_type='{message.content_type}')"
        )
        try:
            await self._connection.publish(message)
        except (MqttError, ValueError) as e:
            # ValueError: the transport refused the message itself, e.g. an empty topic
            error_msg = f"Failed to publish to '{topic}': {e}"
            logger.error(error_msg)
            raise PublishError(error_msg) from e
        logger.debug(f"Publish to '{message.topic}' acknowledged.")

    async def close(self):
        """Disconnects from the broker. The sender cannot be used afterwards."""
        await self._connection.close()

    async def __aenter__(self) -> "MqttSender":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
