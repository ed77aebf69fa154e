"""
Error Taxonomy.

Every failure a caller can see is a `SenderError`. The subclass names the
phase that failed so a test can tell a misconfiguration apart from a
broker that refused the connection or a single rejected publish.
"""


class SenderError(Exception):
    """Base class for all errors raised by mqtt_sender."""


class UnsupportedConfigurationError(SenderError):
    """
    The requested configuration is recognized but not supported.

    Raised eagerly, before any network I/O is attempted.
    """


class ClientCreationError(SenderError):
    """The underlying transport client object could not be constructed."""


class ConnectError(SenderError):
    """The initial connection to the broker failed."""


class PublishError(SenderError):
    """
    A single publish failed (not connected, rejected or timed out).

    The sender that raised it remains usable for further calls.
    """
