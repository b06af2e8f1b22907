import ssl

import pytest

from fortiprobe.client import (
    FortiHTTPError,
    FortiTokenClient,
    make_ssl_context,
    new_forti_client,
)
from fortiprobe.config import ExporterConfig, LocalCert, TargetAuth


class FakeResponse:
    def __init__(self, status_code, content):
        self.status_code = status_code
        self.content = content


class FakeTransport:
    def __init__(self, status, body):
        self.status = status
        self.body = body
        self.calls = []

    def get(self, url, headers=None):
        self.calls.append((url, headers))
        return FakeResponse(self.status, self.body.encode())


def new_client(status, body):
    transport = FakeTransport(status, body)
    return FortiTokenClient("https://localhost", transport, "token"), transport


def test_get_parse():
    client, _ = new_client(200, '{ "data": "test" }')
    assert client.get("test", "") == {"data": "test"}


def test_get_fail():
    client, _ = new_client(404, "{}")
    with pytest.raises(FortiHTTPError, match="404"):
        client.get("test", "")


def test_get_invalid_json():
    client, _ = new_client(200, "not json")
    with pytest.raises(FortiHTTPError):
        client.get("test", "")


def test_get_builds_url_and_header():
    client, transport = new_client(200, "[]")
    assert client.get("api/v2/monitor/firewall/ippool", "vdom=*") == []
    url, headers = transport.calls[0]
    assert url == "https://localhost/api/v2/monitor/firewall/ippool?vdom=*"
    assert headers == {"Authorization": "Bearer token"}


def test_get_without_query():
    client, transport = new_client(200, "{}")
    client.get("api/v2/monitor/license/status/select", "")
    assert transport.calls[0][0] == "https://localhost/api/v2/monitor/license/status/select"


def test_str_is_target():
    client, _ = new_client(200, "{}")
    assert str(client) == "https://localhost"


def config_with(target, token):
    return ExporterConfig(auth_keys={target: TargetAuth(token=token)})


def test_new_forti_client_ok():
    client = new_forti_client("https://localhost", FakeTransport(200, "{}"),
                              config_with("https://localhost", "token"))
    assert isinstance(client, FortiTokenClient)
    assert str(client) == "https://localhost"


def test_new_forti_client_unknown_target():
    with pytest.raises(FortiHTTPError, match="no API authentication"):
        new_forti_client("https://other", FakeTransport(200, "{}"),
                         config_with("https://localhost", "token"))


def test_new_forti_client_requires_https():
    with pytest.raises(FortiHTTPError, match="HTTPS"):
        new_forti_client("http://localhost", FakeTransport(200, "{}"),
                         config_with("http://localhost", "token"))


def test_new_forti_client_empty_token():
    with pytest.raises(FortiHTTPError, match="invalid authentication data"):
        new_forti_client("https://localhost", FakeTransport(200, "{}"),
                         config_with("https://localhost", ""))


def test_ssl_context_default_verifies():
    context = make_ssl_context(ExporterConfig())
    assert context.verify_mode == ssl.CERT_REQUIRED
    assert context.check_hostname is True


def test_ssl_context_insecure():
    context = make_ssl_context(ExporterConfig(tls_insecure=True))
    assert context.verify_mode == ssl.CERT_NONE
    assert context.check_hostname is False


def test_ssl_context_bad_pem():
    config = ExporterConfig(tls_extra_cas=[LocalCert(path="bad.pem", content=b"garbage")])
    with pytest.raises(FortiHTTPError, match="bad.pem"):
        make_ssl_context(config)