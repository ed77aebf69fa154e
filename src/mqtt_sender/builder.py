"""
Connection Builder.

Turns an endpoint, a client identity, an auth strategy and a protocol
version into a frozen `ConnectRequest`. The request holds everything the
transport client needs: server URI, identity, persistence mode, TLS,
credentials, keep-alive, reconnect policy and the version-specific fields.
"""
import logging
import ssl
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aiomqtt import ProtocolVersion
from paho.mqtt.properties import MQTTException, Properties

from mqtt_sender.auth import Auth, apply_auth
from mqtt_sender.errors import ClientCreationError
from mqtt_sender.models import (
    DEFAULT_TIMEOUT,
    KEEPALIVE_SECONDS,
    ConnectOptions,
    Endpoint,
    Persistence,
    ReconnectPolicy,
    TLSSettings,
)
from mqtt_sender.versions import MqttVersion, apply_connect_options, create_protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ConnectRequest:
    """
    Everything needed to create and connect one transport client.

    Make sure the keys of `to_client_args` exactly match the keyword
    arguments of aiomqtt.Client, since they are passed to it unchanged.
    """
    endpoint: Endpoint
    identifier: str
    protocol: ProtocolVersion
    persistence: Persistence
    tls_context: ssl.SSLContext
    tls_insecure: Optional[bool]
    keepalive: int
    reconnect: ReconnectPolicy
    timeout: float
    username: Optional[str] = None
    password: Optional[str] = None
    clean_session: Optional[bool] = None
    clean_start: Optional[bool] = None
    properties: Optional[Properties] = None

    @property
    def server_uri(self) -> str:
        return self.endpoint.server_uri

    def to_client_args(self) -> Dict[str, Any]:
        """Returns dict suitable for aiomqtt.Client(**args)"""
        return {
            "hostname": self.endpoint.host,
            "port": self.endpoint.port,
            "identifier": self.identifier,
            "protocol": self.protocol,
            "keepalive": self.keepalive,
            "timeout": self.timeout,
            "tls_context": self.tls_context,
            # Fields that are only legal for one protocol version are left out entirely
            **({"tls_insecure": self.tls_insecure} if self.tls_insecure is not None else {}),
            **({"username": self.username} if self.username is not None else {}),
            **({"password": self.password} if self.password is not None else {}),
            **({"clean_session": self.clean_session} if self.clean_session is not None else {}),
            **({"clean_start": self.clean_start} if self.clean_start is not None else {}),
            **({"properties": self.properties} if self.properties is not None else {}),
        }


def make_tls_context(tls: TLSSettings) -> ssl.SSLContext:
    """
    Builds the SSL context for the broker connection.

    With `tls.insecure` set, the broker certificate and host name are not
    checked at all. Insecure, test use only.
    """
    try:
        context = ssl.create_default_context(cafile=tls.ca_certs)
    except (OSError, ssl.SSLError) as e:
        error_msg = f"Failed to load CA certificates from '{tls.ca_certs}': {e}"
        logger.error(error_msg)
        raise ClientCreationError(error_msg) from e

    if tls.insecure:
        # check_hostname must be cleared before verify_mode can drop to CERT_NONE
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        logger.warning("TLS certificate and hostname verification are DISABLED (insecure, test use only).")
    return context


def build_connect_request(
    endpoint: Endpoint,
    identifier: str,
    auth: Auth,
    version: MqttVersion,
    *,
    tls: TLSSettings = TLSSettings(),
    keepalive: int = KEEPALIVE_SECONDS,
    reconnect: ReconnectPolicy = ReconnectPolicy(),
    timeout: float = DEFAULT_TIMEOUT,
) -> ConnectRequest:
    """
    Assembles the connect request.

    Raises UnsupportedConfigurationError for an unsupported auth strategy
    and ClientCreationError for options the transport cannot accept. No
    network I/O happens here.
    """
    # Create time: the protocol version cannot change once the client exists
    protocol = create_protocol(version)

    options = ConnectOptions(keepalive=keepalive)
    options.tls_context = make_tls_context(tls)
    options.tls_insecure = True if tls.insecure else None

    # May refuse the configuration before anything touches the network
    apply_auth(auth, options)

    # Connect time: version-specific fields
    try:
        apply_connect_options(version, options)
    except (MQTTException, TypeError, ValueError) as e:
        error_msg = f"Invalid connect options for {type(version).__name__}: {e}"
        logger.error(error_msg)
        raise ClientCreationError(error_msg) from e

    request = ConnectRequest(
        endpoint=endpoint,
        identifier=identifier,
        protocol=protocol,
        persistence=Persistence.NONE,
        tls_context=options.tls_context,
        tls_insecure=options.tls_insecure,
        keepalive=options.keepalive,
        reconnect=reconnect,
        timeout=timeout,
        username=options.username,
        password=options.password,
        clean_session=options.clean_session,
        clean_start=options.clean_start,
        properties=options.properties,
    )
    logger.debug(
        f"Built connect request for {request.server_uri} as '{identifier}' "
        f"(protocol={protocol.name}, keepalive={keepalive}s, persistence={Persistence.NONE.value})"
    )
    return request
