"""
Authentication Strategies.

An `Auth` value is chosen by the test setup before the connection is built
and is frozen afterwards. Applying it writes the credential fields of the
connect options, or refuses the configuration outright.
"""
import logging
from dataclasses import dataclass, field
from typing import Union

from mqtt_sender.errors import UnsupportedConfigurationError
from mqtt_sender.models import ConnectOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoAuth:
    """Connect without credentials."""


@dataclass(frozen=True)
class UsernamePassword:
    """Username/password pair carried in the CONNECT packet."""
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class X509Certificate:
    """
    Client certificate authentication.

    Accepted as a configuration value, but connecting with it is not
    supported and raises UnsupportedConfigurationError.
    """
    certificate: bytes = field(repr=False)


Auth = Union[NoAuth, UsernamePassword, X509Certificate]


def apply_auth(auth: Auth, options: ConnectOptions) -> None:
    """
    Applies the credential part of `auth` to the connect options.

    Raises UnsupportedConfigurationError for X.509 certificates instead of
    silently connecting without them.
    """
    if isinstance(auth, NoAuth):
        return
    if isinstance(auth, UsernamePassword):
        # Credential format is the broker's business, rejections show up at connect time
        options.username = auth.username
        options.password = auth.password
        logger.debug(f"Using username/password authentication as '{auth.username}'")
        return
    if isinstance(auth, X509Certificate):
        error_msg = "X.509 client certificates are not supported by the MQTT sender yet"
        logger.error(error_msg)
        raise UnsupportedConfigurationError(error_msg)
    raise TypeError(f"Unknown auth strategy: {type(auth).__name__}")
