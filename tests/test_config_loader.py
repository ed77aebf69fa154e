import pytest
import yaml

from mqtt_sender.auth import NoAuth, UsernamePassword, X509Certificate
from mqtt_sender.builder import build_connect_request
from mqtt_sender.config_loader import (
    auth_from_config,
    endpoint_from_config,
    load_config,
    payload_from_config,
    tls_from_config,
    version_from_config,
)
from mqtt_sender.models import Endpoint, TLSSettings
from mqtt_sender.versions import V3_1_1, V5, V5Options


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "mqtt:\n"
        "  host: broker.test\n"
        "  port: '8884'\n"
        "  protocol: '3.1.1'\n"
        "  auth:\n"
        "    type: username_password\n"
        "    username: tester\n"
        "    password: secret\n"
        "  tls:\n"
        "    insecure: true\n"
        "message:\n"
        "  topic: test/topic\n"
    )
    return path


def test_load_config_reads_yaml(config_file):
    config = load_config(str(config_file))

    assert config["mqtt"]["host"] == "broker.test"
    assert config["message"]["topic"] == "test/topic"


def test_missing_config_file_means_defaults(tmp_path):
    assert load_config(str(tmp_path / "nope.yaml")) == {}


def test_broken_yaml_is_raised(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("mqtt: [unclosed\n")

    with pytest.raises(yaml.YAMLError):
        load_config(str(path))


def test_values_from_config(config_file):
    config = load_config(str(config_file))

    assert endpoint_from_config(config) == Endpoint("broker.test", 8884)
    assert auth_from_config(config) == UsernamePassword("tester", "secret")
    assert version_from_config(config) == V3_1_1()
    assert tls_from_config(config) == TLSSettings(insecure=True)


def test_defaults_for_empty_config():
    assert endpoint_from_config({}) == Endpoint("localhost", 8883)
    assert auth_from_config({}) == NoAuth()
    assert version_from_config({}) == V5()
    assert tls_from_config({}) == TLSSettings()


def test_v5_options_from_config():
    config = {"mqtt": {"protocol": 5, "v5": {"session_expiry_interval": 60, "user_properties": {"suite": "smoke"}}}}

    assert version_from_config(config) == V5(V5Options(session_expiry_interval=60, user_properties=(("suite", "smoke"),)))


def test_quoted_v5_limits_are_read_as_integers():
    config = {"mqtt": {"protocol": "5", "v5": {"receive_maximum": "10", "maximum_packet_size": "4096"}}}

    version = version_from_config(config)

    assert version == V5(V5Options(receive_maximum=10, maximum_packet_size=4096))
    request = build_connect_request(Endpoint("localhost", 8883), "client-1", NoAuth(), version)
    assert request.to_client_args()["properties"].ReceiveMaximum == 10


def test_non_numeric_v5_limit_is_rejected():
    with pytest.raises(ValueError, match="receive_maximum"):
        version_from_config({"mqtt": {"v5": {"receive_maximum": "many"}}})


def test_x509_without_certificate_file_is_rejected():
    with pytest.raises(ValueError, match="certificate_file"):
        auth_from_config({"mqtt": {"auth": {"type": "x509"}}})


@pytest.mark.parametrize("payload, expected", [
    (None, None),
    ("hello", b"hello"),
    (42, b"42"),
    (1.5, b"1.5"),
    (True, b"True"),
])
def test_payload_from_config(payload, expected):
    assert payload_from_config({"message": {"payload": payload}}) == expected


@pytest.mark.parametrize("payload", [["a", "b"], {"a": 1}])
def test_structured_payload_is_rejected(payload):
    with pytest.raises(ValueError, match="message.payload"):
        payload_from_config({"message": {"payload": payload}})


def test_x509_certificate_is_loaded_from_file(tmp_path):
    cert = tmp_path / "client.pem"
    cert.write_bytes(b"-----BEGIN CERTIFICATE-----")

    auth = auth_from_config({"mqtt": {"auth": {"type": "x509", "certificate_file": str(cert)}}})

    assert auth == X509Certificate(b"-----BEGIN CERTIFICATE-----")


def test_unknown_protocol_is_rejected():
    with pytest.raises(ValueError):
        version_from_config({"mqtt": {"protocol": "3.1"}})


def test_unknown_auth_type_is_rejected():
    with pytest.raises(ValueError):
        auth_from_config({"mqtt": {"auth": {"type": "kerberos"}}})
