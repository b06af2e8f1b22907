import platform
import threading
import urllib.error
import urllib.request
from urllib.parse import urlencode

import pytest

from fortiprobe.app import (
    BuildInfo,
    _collect,
    _target_metadata,
    build_info_metric,
    get_build_info,
    main,
    make_server,
)
from fortiprobe.client import FortiHTTPError
from fortiprobe.config import ExporterConfig, Probes, TargetAuth
from fortiprobe.metrics import TargetMetadata, render

LICENSE_PATH = "api/v2/monitor/license/status/select"


class FakeClient:
    def __init__(self, responses):
        self.responses = responses

    def get(self, path, query=""):
        if path not in self.responses:
            raise FortiHTTPError(f"response code was 404, expected 200 (path: {path!r})")
        return self.responses[path]


def _fetch(url):
    try:
        with urllib.request.urlopen(url, timeout=10) as response:
            return response.status, response.read().decode()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.read().decode()


@pytest.fixture
def server_url():
    config = ExporterConfig(
        auth_keys={
            "https://fw.example.com": TargetAuth(token="token"),
            "http://plain.example.com": TargetAuth(token="token"),
            "https://notoken.example.com": TargetAuth(),
        },
        listen="127.0.0.1:0",
    )
    server = make_server(config, BuildInfo("1.2.3", "abc", "3.10.0"))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


def test_get_build_info_strips_leading_v():
    info = get_build_info("v1.2.3", "abc")
    assert info.version == "1.2.3"
    assert info.git_hash == "abc"
    assert info.python_version == platform.python_version()


def test_get_build_info_keeps_version_without_v():
    assert get_build_info("2.0.0", "abc").version == "2.0.0"


def test_build_info_metric_labels_and_value():
    metric = build_info_metric(BuildInfo("1.2.3", "abc", "3.10.0"))
    assert metric.name == "fortigate_exporter_build_info"
    assert metric.value == 1.0
    assert metric.labels == {"version": "1.2.3", "revision": "abc", "pythonversion": "3.10.0"}


def test_build_info_metric_renders():
    text = render([build_info_metric(BuildInfo("1.2.3", "abc", "3.10.0"))])
    assert (
        'fortigate_exporter_build_info{pythonversion="3.10.0",revision="abc",version="1.2.3"} 1\n'
        in text
    )


def test_metrics_endpoint(server_url):
    status, body = _fetch(server_url + "/metrics")
    assert status == 200
    assert 'fortigate_exporter_build_info{pythonversion="3.10.0"' in body


def test_probe_without_target(server_url):
    status, body = _fetch(server_url + "/probe")
    assert status == 400
    assert body == "Target parameter missing or empty\n"


def test_probe_unknown_target(server_url):
    query = urlencode({"target": "https://unknown.example.com"})
    status, body = _fetch(server_url + "/probe?" + query)
    assert status == 400
    assert "no API authentication registered" in body
    assert body.startswith("probe: ")


def test_probe_token_over_http_rejected(server_url):
    query = urlencode({"target": "http://plain.example.com"})
    status, body = _fetch(server_url + "/probe?" + query)
    assert status == 400
    assert "FortiOS only supports token for HTTPS connections" in body


def test_probe_without_token_rejected(server_url):
    query = urlencode({"target": "https://notoken.example.com"})
    status, body = _fetch(server_url + "/probe?" + query)
    assert status == 400
    assert "invalid authentication data" in body


def test_unknown_path_is_404(server_url):
    status, _ = _fetch(server_url + "/nothing")
    assert status == 404


def test_collect_reports_failure_but_keeps_metrics():
    client = FakeClient({LICENSE_PATH: {"results": {"vdom": {"used": 114, "max": 125}}}})
    metrics, success = _collect(client, ExporterConfig(), TargetMetadata(7, 0), Probes())
    assert success is False
    values = {m.name: m.value for m in metrics}
    assert values["fortigate_license_vdom_usage"] == 114
    assert values["fortigate_license_vdom_max"] == 125


def test_collect_include_selects_probes():
    client = FakeClient({LICENSE_PATH: {"results": {"vdom": {"used": 114, "max": 125}}}})
    metrics, success = _collect(
        client, ExporterConfig(), TargetMetadata(7, 0), Probes(include=["License/Status"])
    )
    assert success is True
    assert sorted(m.name for m in metrics) == [
        "fortigate_license_vdom_max",
        "fortigate_license_vdom_usage",
    ]


def test_collect_exclude_removes_probe():
    client = FakeClient({LICENSE_PATH: {"results": {"vdom": {"used": 114, "max": 125}}}})
    metrics, success = _collect(
        client,
        ExporterConfig(),
        TargetMetadata(7, 0),
        Probes(include=["License/Status"], exclude=["License/Status"]),
    )
    assert (metrics, success) == ([], True)


def test_target_metadata_from_version():
    client = FakeClient({LICENSE_PATH: {"version": "v6.4.4", "results": {}}})
    assert _target_metadata(client) == TargetMetadata(6, 4)


def test_target_metadata_defaults_on_error():
    assert _target_metadata(FakeClient({})) == TargetMetadata()


def test_main_missing_auth_file(tmp_path):
    missing = tmp_path / "missing.yaml"
    assert main(["--auth-file", str(missing)]) == 1