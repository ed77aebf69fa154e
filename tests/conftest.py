"""
Pytest Configuration and Fixtures for the mqtt_sender project.

Provides a scripted stand-in for `aiomqtt.Client` so the connection and
sender logic can be tested on any machine without a broker running.
"""

import asyncio
import logging
import sys
from typing import List, Optional
from unittest.mock import patch

import pytest
from aiomqtt import MqttError


class FakeMQTTClient:
    """
    Behaves like a connected aiomqtt.Client as far as mqtt_sender uses it:
    `async with` connects, `messages` blocks until the link drops and
    `publish` records what would have gone on the wire.
    """
    def __init__(self, broker: "FakeBroker", **kwargs):
        self.broker = broker
        self.kwargs = kwargs
        self.connected = False
        self.enter_count = 0
        self.published: List[dict] = []
        self._link: Optional[asyncio.Future] = None

    async def __aenter__(self):
        self.enter_count += 1
        if self.broker.connect_gate is not None:
            await self.broker.connect_gate.wait()
        outcome = self.broker.connect_outcomes.pop(0) if self.broker.connect_outcomes else None
        if outcome is not None:
            raise outcome
        self._link = asyncio.get_running_loop().create_future()
        self.connected = True
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.connected = False

    @property
    def messages(self):
        return self._messages()

    async def _messages(self):
        while True:
            yield await self._link

    def drop(self):
        """Simulates the broker going away."""
        self._link.set_exception(MqttError("Disconnected during message iteration"))

    async def publish(self, topic, payload=None, qos=0, retain=False, properties=None, *args, timeout=None, **kwargs):
        if not topic:
            raise ValueError("Invalid topic.")
        if not self.connected:
            raise MqttError("Could not publish message")
        if self.broker.publish_errors:
            raise self.broker.publish_errors.pop(0)
        if self.broker.ack is not None:
            # Hold the publish until the test plays the broker's acknowledgement
            await self.broker.ack.wait()
        self.published.append({
            "topic": topic,
            "payload": payload,
            "qos": qos,
            "retain": retain,
            "properties": properties,
            "timeout": timeout,
        })


class FakeBroker:
    """Scripts the outcomes FakeMQTTClient instances see."""
    def __init__(self):
        self.clients: List[FakeMQTTClient] = []
        self.connect_outcomes: list = []  # exception to raise per connect attempt, None for success
        self.publish_errors: list = []
        self.connect_gate: Optional[asyncio.Event] = None
        self.ack: Optional[asyncio.Event] = None

    def create_client(self, **kwargs) -> FakeMQTTClient:
        client = FakeMQTTClient(self, **kwargs)
        self.clients.append(client)
        return client

    @property
    def client(self) -> FakeMQTTClient:
        return self.clients[-1]


@pytest.fixture
def fake_broker():
    """Replaces aiomqtt.Client inside mqtt_sender.connection for the duration of a test."""
    broker = FakeBroker()
    with patch('mqtt_sender.connection.MQTTClient', side_effect=broker.create_client) as client_cls:
        broker.client_cls = client_cls
        yield broker


@pytest.fixture
def wait_until():
    """Polls `predicate` on the running loop until it holds, failing the test after `timeout`."""
    async def _wait_until(predicate, timeout: float = 1.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                pytest.fail("Condition not reached in time.")
            await asyncio.sleep(0.005)
    return _wait_until


@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """
    Configures the Python logging framework globally for all tests.
    Because tests bypass main.py, this ensures our logs are formatted
    and visible exactly how we want them during test runs.
    """
    formatter = logging.Formatter(fmt="%(levelname)-8s %(message)s - %(funcName)s:%(lineno)d ")
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
