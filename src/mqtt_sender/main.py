"""
One-shot entry point: send the message described in config.yaml.

This module is responsible for:
- Configuring logging.
- Loading the configuration (YAML).
- Connecting an MqttSender, publishing the configured message once and
  closing the connection again.

Run with `python -m mqtt_sender.main [config.yaml]`.
"""

import asyncio
import logging
import sys

from typing import Dict, Any

from mqtt_sender.config_loader import (
    auth_from_config,
    endpoint_from_config,
    load_config,
    payload_from_config,
    tls_from_config,
    version_from_config,
)
from mqtt_sender.models import QoS
from mqtt_sender.sender import MqttSender

def setup_logging():
    """
    Configures the global logging settings for the one-shot sender.
    This should be called before the config is loaded so its warnings show.
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)-8s] %(name)s.%(funcName)s: %(message)s'
    )

logger = logging.getLogger(__name__)

async def main_application_runner(config_path: str = "config.yaml"):
    setup_logging()
    config: Dict[str, Any] = load_config(config_path)
    message_conf = config.get('message', {})
    # Rejected before any connection is opened
    payload = payload_from_config(config)

    sender = await MqttSender.connect(
        endpoint_from_config(config),
        auth_from_config(config),
        version_from_config(config),
        tls=tls_from_config(config),
    )
    try:
        topic = message_conf.get('topic', 'test/topic')
        await sender.send(
            topic,
            QoS(int(message_conf.get('qos', 1))),
            message_conf.get('content_type', 'text/plain'),
            payload,
        )
        logger.info(f"Message delivered to '{topic}'.")
    finally:
        await sender.close()

if __name__ == "__main__":
    asyncio.run(main_application_runner(*sys.argv[1:2]))
