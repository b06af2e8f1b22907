"""HTTP server exposing the exporter's own metrics and Fortigate probes."""

from __future__ import annotations

import logging
import platform
import socket
import time
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from importlib import metadata
from urllib.parse import parse_qs, urlsplit

import requests
from requests.adapters import HTTPAdapter

from .bgp import (
    probe_bgp_neighbor_paths_ipv4,
    probe_bgp_neighbor_paths_ipv6,
    probe_bgp_neighbors_ipv4,
    probe_bgp_neighbors_ipv6,
)
from .client import FortiHTTPError, make_ssl_context, new_forti_client
from .config import ConfigError, Probes, load_config
from .firewall import (
    probe_firewall_ippool,
    probe_firewall_load_balance,
    probe_firewall_policies,
)
from .logging_probes import (
    probe_license_status,
    probe_log_analyzer,
    probe_log_analyzer_queue,
    probe_log_current_disk_usage,
)
from .metrics import Desc, ProbeError, TargetMetadata, ValueType, render
from .version import parse_version

log = logging.getLogger(__name__)

DEFAULT_VERSION = "(devel)"
DEFAULT_GIT_HASH = "(no hash)"
CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

_LICENSE_PATH = "api/v2/monitor/license/status/select"

_PROBES = (
    ("BGP/NeighborPaths/IPv4",
     lambda c, m, cfg: probe_bgp_neighbor_paths_ipv4(c, m, cfg.max_bgp_paths)),
    ("BGP/NeighborPaths/IPv6",
     lambda c, m, cfg: probe_bgp_neighbor_paths_ipv6(c, m, cfg.max_bgp_paths)),
    ("BGP/Neighbors/IPv4", lambda c, m, cfg: probe_bgp_neighbors_ipv4(c, m)),
    ("BGP/Neighbors/IPv6", lambda c, m, cfg: probe_bgp_neighbors_ipv6(c, m)),
    ("Firewall/IpPool", lambda c, m, cfg: probe_firewall_ippool(c, m)),
    ("Firewall/LoadBalance", lambda c, m, cfg: probe_firewall_load_balance(c, m)),
    ("Firewall/Policies", lambda c, m, cfg: probe_firewall_policies(c, m)),
    ("License/Status", lambda c, m, cfg: probe_license_status(c, m)),
    ("Log/DiskUsage", lambda c, m, cfg: probe_log_current_disk_usage(c, m)),
    ("Log/Fortianalyzer/Status", lambda c, m, cfg: probe_log_analyzer(c, m)),
    ("Log/Fortianalyzer/Queue", lambda c, m, cfg: probe_log_analyzer_queue(c, m)),
)


@dataclass(frozen=True)
class BuildInfo:
    """Version information about the running exporter."""

    version: str
    git_hash: str
    python_version: str


def get_build_info(version=DEFAULT_VERSION, git_hash=DEFAULT_GIT_HASH):
    """Collect build information, dropping a leading ``v`` from the version."""
    if version == DEFAULT_VERSION:
        try:
            version = metadata.version("fortiprobe")
        except metadata.PackageNotFoundError:
            pass
    return BuildInfo(
        version=version.removeprefix("v"),
        git_hash=git_hash,
        python_version=platform.python_version(),
    )


def build_info_metric(info):
    """Return the info metric describing the exporter build."""
    desc = Desc(
        "fortigate_exporter_build_info",
        "This info metric contains build information for about the exporter",
        ("version", "revision", "pythonversion"),
    )
    return desc.metric(ValueType.GAUGE, 1, info.version, info.git_hash, info.python_version)


class _TLSAdapter(HTTPAdapter):
    def __init__(self, ssl_context, **kwargs):
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self._ssl_context
        return super().init_poolmanager(*args, **kwargs)


class _Transport:
    """A requests session with the exporter's TLS settings and timeouts."""

    def __init__(self, session, timeout, verify):
        self._session = session
        self._timeout = timeout
        self._verify = verify

    def get(self, url, headers=None):
        return self._session.get(
            url, headers=headers, timeout=self._timeout, verify=self._verify
        )


def _selected_probes(probes):
    include = set(probes.include)
    exclude = set(probes.exclude)
    return [
        (name, func)
        for name, func in _PROBES
        if (not include or name in include) and name not in exclude
    ]


def _target_metadata(client):
    try:
        payload = client.get(_LICENSE_PATH, "")
    except FortiHTTPError as exc:
        log.warning("Could not determine target version: %s", exc)
        return TargetMetadata()
    version = payload.get("version", "") if isinstance(payload, dict) else ""
    try:
        major, minor = parse_version(version)
    except (ValueError, TypeError):
        log.warning("Could not parse version number %r", version)
        return TargetMetadata()
    return TargetMetadata(version_major=major, version_minor=minor)


def _collect(client, config, meta, probes=None):
    """Run the selected probes; return the metrics and whether all succeeded."""
    metrics = []
    success = True
    for name, func in _selected_probes(probes or Probes()):
        try:
            metrics.extend(func(client, meta, config))
        except ProbeError as exc:
            log.error("Probe %s failed: %s", name, exc)
            success = False
        except (AttributeError, TypeError, ValueError, KeyError) as exc:
            log.error("Probe %s got malformed data: %s", name, exc)
            success = False
    return metrics, success


_PROBE_SUCCESS = Desc("probe_success", "Whether or not the probe succeeded")
_PROBE_DURATION = Desc("probe_duration_seconds", "How many seconds the probe took to complete")


class _Handler(BaseHTTPRequestHandler):
    server_version = "fortiprobe"

    def do_GET(self):
        url = urlsplit(self.path)
        if url.path == "/metrics":
            self._send(200, render([self.server.build_metric]), CONTENT_TYPE)
        elif url.path == "/probe":
            self._probe(parse_qs(url.query))
        else:
            self._send(404, "404 page not found\n")

    def _probe(self, params):
        config = self.server.config
        target = params.get("target", [""])[0]
        if not target:
            self._send(400, "Target parameter missing or empty\n")
            return
        start = time.monotonic()
        try:
            client = new_forti_client(target, self.server.transport, config)
        except FortiHTTPError as exc:
            log.error("Probe request rejected; error is: %s", exc)
            self._send(400, f"probe: {exc}\n")
            return
        meta = _target_metadata(client)
        metrics, success = _collect(client, config, meta, config.auth_keys[target].probes)
        duration = time.monotonic() - start
        outcome = "succeeded" if success else "failed"
        log.info("Probe of %r %s, took %.3f seconds", target, outcome, duration)
        metrics.append(_PROBE_SUCCESS.metric(ValueType.GAUGE, 1 if success else 0))
        metrics.append(_PROBE_DURATION.metric(ValueType.GAUGE, duration))
        try:
            body = render(metrics)
        except ValueError as exc:
            log.error("Failed to render metrics: %s", exc)
            self._send(500, f"An error has occurred while serving metrics:\n\n{exc}\n")
            return
        self._send(200, body, CONTENT_TYPE)

    def _send(self, status, body, content_type="text/plain; charset=utf-8"):
        data = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        log.debug(format, *args)


class _ExporterServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, config, info, transport):
        self.config = config
        self.build_metric = build_info_metric(info)
        self.transport = transport
        if ":" in address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(address, _Handler)


def _parse_listen(listen):
    host, sep, port = listen.rpartition(":")
    if not sep:
        raise ValueError(f"listen address {listen!r} has no port")
    return host.strip("[]"), int(port)


def make_server(config, info):
    """Create, without starting, the HTTP server serving /metrics and /probe."""
    ssl_context = make_ssl_context(config)
    session = requests.Session()
    session.mount("https://", _TLSAdapter(ssl_context))
    transport = _Transport(
        session,
        timeout=(config.tls_timeout, config.scrape_timeout),
        verify=not config.tls_insecure,
    )
    return _ExporterServer(_parse_listen(config.listen), config, info, transport)


def main(argv=None):
    """Run the exporter until interrupted; return the exit status."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    info = get_build_info()
    log.info("FortigateExporter %s ( %s )", info.version, info.git_hash)

    try:
        config = load_config(argv)
    except ConfigError as exc:
        log.error("Initialization error: %s", exc)
        return 1

    try:
        server = make_server(config, info)
    except (FortiHTTPError, OSError, ValueError) as exc:
        log.error("Unable to serve: %s", exc)
        return 1

    log.info("Fortigate exporter running, listening on %r", config.listen)
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0