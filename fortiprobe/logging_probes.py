"""Probes for licensing, log disk usage and FortiAnalyzer logging."""

from __future__ import annotations

import logging

from .client import FortiHTTPError
from .metrics import Desc, ProbeError, ValueType

log = logging.getLogger(__name__)


def _fetch(client, path, query):
    try:
        return client.get(path, query)
    except FortiHTTPError as exc:
        log.error("Error: %s", exc)
        raise ProbeError(str(exc)) from exc


def _per_vdom(client, path):
    payload = _fetch(client, path, "vdom=*")
    if payload is None:
        return []
    if not isinstance(payload, list) or not all(isinstance(r, dict) for r in payload):
        raise ProbeError(f"unexpected response from {path!r}: expected a list of objects")
    return [(r.get("vdom", ""), r.get("results") or {}) for r in payload]


def probe_license_status(client, meta):
    """Report used and maximum VDOM licenses."""
    vdom_used = Desc(
        "fortigate_license_vdom_usage", "The amount of VDOM licenses currently used"
    )
    vdom_max = Desc(
        "fortigate_license_vdom_max", "The total amount of VDOM licenses available"
    )

    path = "api/v2/monitor/license/status/select"
    payload = _fetch(client, path, "")
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ProbeError(f"unexpected response from {path!r}: expected an object")
    vdom = (payload.get("results") or {}).get("vdom") or {}

    return [
        vdom_used.metric(ValueType.GAUGE, vdom.get("used", 0)),
        vdom_max.metric(ValueType.GAUGE, vdom.get("max", 0)),
    ]


def probe_log_current_disk_usage(client, meta):
    """Report disk space used by and available for logs per VDOM."""
    log_used = Desc("fortigate_log_disk_used_bytes", "Disk used bytes for log", ("vdom",))
    log_total = Desc("fortigate_log_disk_total_bytes", "Disk total bytes for log", ("vdom",))

    metrics = []
    for vdom, results in _per_vdom(client, "api/v2/monitor/log/current-disk-usage"):
        metrics.append(log_used.metric(ValueType.GAUGE, results.get("used_bytes", 0), vdom))
        metrics.append(log_total.metric(ValueType.GAUGE, results.get("total_bytes", 0), vdom))
    return metrics


def probe_log_analyzer(client, meta):
    """Report FortiAnalyzer registration state and received logs per VDOM."""
    info = Desc(
        "fortigate_log_fortianalyzer_registration_info",
        "Fortianalyzer state info",
        ("vdom", "registration", "connection"),
    )
    received = Desc(
        "fortigate_log_fortianalyzer_logs_received",
        "Received logs in fortianalyzer",
        ("vdom",),
    )

    metrics = []
    for vdom, results in _per_vdom(client, "api/v2/monitor/log/fortianalyzer"):
        metrics.append(
            info.metric(
                ValueType.GAUGE,
                1,
                vdom,
                results.get("registration", ""),
                results.get("connection", ""),
            )
        )
        metrics.append(received.metric(ValueType.GAUGE, results.get("received", 0), vdom))
    return metrics


def probe_log_analyzer_queue(client, meta):
    """Report FortiAnalyzer queue connection state and queued logs per VDOM."""
    connections = Desc(
        "fortigate_log_fortianalyzer_queue_connections",
        "Fortianalyzer queue connected state",
        ("vdom",),
    )
    logs = Desc(
        "fortigate_log_fortianalyzer_queue_logs",
        "State of logs in the queue",
        ("vdom", "state"),
    )

    metrics = []
    for vdom, results in _per_vdom(client, "api/v2/monitor/log/fortianalyzer-queue"):
        metrics.append(connections.metric(ValueType.GAUGE, results.get("connected", 0), vdom))
        # Failed and cached logs are treated as gauges.
        metrics.append(logs.metric(ValueType.GAUGE, results.get("failed_logs", 0), vdom, "failed"))
        metrics.append(logs.metric(ValueType.GAUGE, results.get("cached_logs", 0), vdom, "cached"))
    return metrics