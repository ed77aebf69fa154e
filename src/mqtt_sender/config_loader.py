"""
Configuration Loader.

Responsible for reading the config.yaml file and turning its `mqtt`
section into the endpoint, auth, protocol version and TLS values the
sender is built from.

    mqtt:
      host: localhost
      port: 8883
      protocol: "5"            # or "3.1.1"
      v5:
        session_expiry_interval: 0
      auth:
        type: username_password  # none | username_password | x509
        username: tester
        password: secret
      tls:
        insecure: true           # test use only
"""
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from mqtt_sender.auth import Auth, NoAuth, UsernamePassword, X509Certificate
from mqtt_sender.models import DEFAULT_PORT, Endpoint, TLSSettings
from mqtt_sender.versions import MqttVersion, V3_1_1, V5, V5Options

logger = logging.getLogger(__name__)

def load_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """
    Loads the YAML configuration file.

    The `mqtt` section describes the broker connection, the `message`
    section the single message main.py sends.
    """
    path = Path(config_path)
    if not path.exists():
        logger.warning(f"Config file not found at {path}. Using defaults.")
        return {}

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f) or {}
            logger.info(f"Loaded configuration from {path}")
            return config
    except Exception as e:
        logger.error(f"Failed to parse config file: {e}")
        raise


def endpoint_from_config(config: Dict[str, Any]) -> Endpoint:
    mqtt_conf = config.get('mqtt', {})
    return Endpoint(
        host=mqtt_conf.get('host', 'localhost'),
        port=int(mqtt_conf.get('port', DEFAULT_PORT)), # Must be int
    )


def auth_from_config(config: Dict[str, Any]) -> Auth:
    """
    Reads `mqtt.auth`. A missing section means no credentials.
    """
    auth_conf = config.get('mqtt', {}).get('auth') or {}
    auth_type = str(auth_conf.get('type', 'none')).lower()

    if auth_type == 'none':
        return NoAuth()
    if auth_type == 'username_password':
        return UsernamePassword(
            username=str(auth_conf.get('username', '')),
            password=str(auth_conf.get('password', '')),
        )
    if auth_type == 'x509':
        # Loaded so the choice is visible; connecting with it is refused later
        if not auth_conf.get('certificate_file'):
            raise ValueError("mqtt.auth.certificate_file is required for x509")
        cert_path = Path(auth_conf['certificate_file'])
        return X509Certificate(certificate=cert_path.read_bytes())
    raise ValueError(f"Unknown value for mqtt.auth.type: '{auth_type}'")


def version_from_config(config: Dict[str, Any]) -> MqttVersion:
    """
    Reads `mqtt.protocol` ("3.1.1" or "5", default "5") and `mqtt.v5`.
    """
    mqtt_conf = config.get('mqtt', {})
    protocol = str(mqtt_conf.get('protocol', '5'))

    if protocol in ('3.1.1', '311', '4'):
        return V3_1_1()
    if protocol in ('5', '5.0'):
        v5_conf = mqtt_conf.get('v5') or {}
        return V5(V5Options(
            session_expiry_interval=int(v5_conf.get('session_expiry_interval', 0)),
            receive_maximum=_optional_int(v5_conf, 'receive_maximum'),
            maximum_packet_size=_optional_int(v5_conf, 'maximum_packet_size'),
            user_properties=tuple(
                (str(key), str(value)) for key, value in (v5_conf.get('user_properties') or {}).items()
            ),
        ))
    raise ValueError(f"Unknown value for mqtt.protocol: '{protocol}'")


def tls_from_config(config: Dict[str, Any]) -> TLSSettings:
    tls_conf = config.get('mqtt', {}).get('tls') or {}
    insecure = bool(tls_conf.get('insecure', False))
    if insecure:
        logger.warning("mqtt.tls.insecure is set: broker certificates will NOT be verified.")
    return TLSSettings(insecure=insecure, ca_certs=tls_conf.get('ca_certs'))


def payload_from_config(config: Dict[str, Any]) -> Optional[bytes]:
    """
    Reads `message.payload`. Strings are sent UTF-8 encoded and plain YAML
    scalars (numbers, booleans) as their text; anything else is rejected.
    """
    payload = config.get('message', {}).get('payload')
    if payload is None:
        return None
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode('utf-8')
    if isinstance(payload, (bool, int, float)):
        return str(payload).encode('utf-8')
    raise ValueError(f"Unsupported type for message.payload: {type(payload).__name__}")


def _optional_int(section: Dict[str, Any], key: str) -> Optional[int]:
    value = section.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"mqtt.v5.{key} must be an integer, got {value!r}") from e
