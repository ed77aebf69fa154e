"""
Broker Connection Handle.

This module is responsible for:
- Instantiating the `aiomqtt` client from a ConnectRequest.
- Performing the initial connect and reporting its outcome.
- Keeping the connection alive in a background task, reconnecting with
  exponential backoff when the broker drops it.
- Publishing messages and waiting for the broker's acknowledgement.
- Tearing the connection down on close.
"""
import asyncio
import functools
import logging
from enum import Enum
from typing import Optional

from aiomqtt import Client as MQTTClient, MqttError

from mqtt_sender.builder import ConnectRequest
from mqtt_sender.errors import ClientCreationError, ConnectError
from mqtt_sender.models import OutboundMessage

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


class BrokerConnection:
    request: ConnectRequest
    state: ConnectionState
    _client: MQTTClient
    _main_task: Optional[asyncio.Task]

    """
    Owns one aiomqtt client and its connection lifetime.

    Not shared: exactly one MqttSender holds a BrokerConnection.
    """
    def __init__(self, request: ConnectRequest):
        self.request = request
        self.state = ConnectionState.CONNECTING
        self._main_task = None
        try:
            self._client = MQTTClient(**request.to_client_args())
        except (ValueError, TypeError) as e:
            error_msg = f"Failed to create MQTT client for {request.server_uri}: {e}"
            logger.error(error_msg)
            raise ClientCreationError(error_msg) from e

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    async def open(self):
        """
        Connects to the broker and starts the background connection loop.

        Returns once the first connection is established. Raises ConnectError
        if it cannot be; if the caller cancels, the loop is torn down with it.
        """
        logger.info(f"Connecting to {self.request.server_uri} as '{self.request.identifier}'...")
        ready = asyncio.get_running_loop().create_future()
        self._main_task = asyncio.create_task(self._main_loop(ready))
        self._main_task.add_done_callback(functools.partial(self._on_main_loop_done, ready))
        try:
            await ready
        except BaseException:
            # Failed or cancelled: never leave a half-open connection behind
            await self._stop_main_task()
            self.state = ConnectionState.CLOSED
            raise

    async def close(self):
        """
        Cancels the connection loop, which disconnects from the broker.
        """
        if self._main_task is None:
            return
        logger.info(f"Closing connection to {self.request.server_uri}...")
        await self._stop_main_task()
        self.state = ConnectionState.CLOSED
        logger.info("Connection closed.")

    async def publish(self, message: OutboundMessage):
        """
        Publishes `message` and waits until the broker acknowledges it.

        For QoS 1 and 2 this resolves on PUBACK/PUBCOMP, for QoS 0 once the
        packet is written. Transport failures propagate as aiomqtt.MqttError.
        """
        await self._client.publish(**message.to_publish_args(), timeout=self.request.timeout)

    def _on_main_loop_done(self, ready: asyncio.Future, task: asyncio.Task):
        if task.cancelled():
            if not ready.done():
                ready.cancel()
            return
        exc = task.exception()
        if exc is None:
            return
        self.state = ConnectionState.DISCONNECTED
        if not ready.done():
            ready.set_exception(exc)
        else:
            logger.error(f"MQTT connection loop crashed: {exc!r}")

    async def _stop_main_task(self):
        task, self._main_task = self._main_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            # We await to make sure the loop finished its cleanup
            await task
        except asyncio.CancelledError:
            pass

    async def _main_loop(self, ready: asyncio.Future):
        """
        The persistent connection loop.

        The first failed connect is reported through `ready`. After that, a
        lost connection is retried with the request's reconnect policy until
        it succeeds, the attempts run out, or the loop is cancelled.
        """
        delays = self.request.reconnect.delays()

        while True:
            try:
                # The connection is ONLY valid inside this block
                async with self._client:
                    self.state = ConnectionState.CONNECTED
                    if not ready.done():
                        ready.set_result(None)
                        logger.info(f"Connected to {self.request.server_uri} as '{self.request.identifier}'.")
                    else:
                        logger.info(f"Reconnected to {self.request.server_uri}.")
                    # A fresh connection restarts the backoff
                    delays = self.request.reconnect.delays()

                    # Nothing is subscribed, so this only returns by raising on disconnect
                    async for _ in self._client.messages:
                        pass

            except asyncio.CancelledError:
                raise  # Let close() handle this
            except MqttError as e:
                if not ready.done():
                    error_msg = f"Failed to connect to {self.request.server_uri}: {e}"
                    logger.error(error_msg)
                    error = ConnectError(error_msg)
                    error.__cause__ = e
                    ready.set_exception(error)
                    self.state = ConnectionState.DISCONNECTED
                    return

                delay = next(delays, None)
                if delay is None:
                    self.state = ConnectionState.DISCONNECTED
                    logger.error(f"MQTT connection lost: {e}. Reconnect attempts exhausted, giving up.")
                    return

                self.state = ConnectionState.RECONNECTING
                logger.warning(f"MQTT connection lost: {e}. Retrying in {delay:.1f}s...")
                await asyncio.sleep(delay)
