"""Probes for firewall IP pools, load balancers and policies."""

from __future__ import annotations

import logging
import math

from .client import FortiHTTPError
from .metrics import Desc, ProbeError, ValueType
from .version import parse_version

log = logging.getLogger(__name__)

_POLICY_LABELS = ("vdom", "protocol", "name", "uuid", "id")


def _fetch(client, path, query):
    try:
        return client.get(path, query)
    except FortiHTTPError as exc:
        log.error("Error: %s", exc)
        raise ProbeError(str(exc)) from exc


def _responses(client, path, query):
    payload = _fetch(client, path, query)
    if payload is None:
        return []
    if not isinstance(payload, list) or not all(isinstance(r, dict) for r in payload):
        raise ProbeError(f"unexpected response from {path!r}: expected a list of objects")
    return payload


def parse_rtt(rtt):
    """Convert a load balancer RTT in milliseconds to seconds.

    ``"<1"`` counts as one millisecond; an empty or unparsable value is NaN.
    """
    if rtt == "<1":
        return 0.001
    if rtt == "":
        return math.nan
    try:
        return float(rtt) / 1000
    except ValueError as exc:
        log.warning("Failed to parse RTT value: %s", exc)
        return math.nan


def probe_firewall_ippool(client, meta):
    """Report usage of the firewall IP pools per VDOM."""
    labels = ("vdom", "name")
    available = Desc(
        "fortigate_ippool_available_ratio", "Percentage available in ippool (0 - 1.0)", labels
    )
    ip_used = Desc("fortigate_ippool_used_ips", "Ip addresses in use in ippool", labels)
    ip_total = Desc("fortigate_ippool_total_ips", "Ip addresses total in ippool", labels)
    clients = Desc("fortigate_ippool_clients", "Amount of clients using ippool", labels)
    used = Desc("fortigate_ippool_used_items", "Amount of items used in ippool", labels)
    total = Desc("fortigate_ippool_total_items", "Amount of items total in ippool", labels)
    pba_per_ip = Desc(
        "fortigate_ippool_pba_per_ip",
        "Amount of available port block allocations per ip",
        labels,
    )

    metrics = []
    for response in _responses(client, "api/v2/monitor/firewall/ippool", "vdom=*"):
        vdom = response.get("vdom", "")
        for pool in (response.get("results") or {}).values():
            name = pool.get("name", "")
            gauge = ValueType.GAUGE
            metrics.extend(
                [
                    available.metric(gauge, float(pool.get("available", 0)) / 100, vdom, name),
                    ip_used.metric(gauge, pool.get("natip_in_use", 0), vdom, name),
                    ip_total.metric(gauge, pool.get("natip_total", 0), vdom, name),
                    clients.metric(gauge, pool.get("clients", 0), vdom, name),
                    used.metric(gauge, pool.get("used", 0), vdom, name),
                    total.metric(gauge, pool.get("total", 0), vdom, name),
                    pba_per_ip.metric(gauge, pool.get("pba_per_ip", 0), vdom, name),
                ]
            )
    return metrics


def probe_firewall_load_balance(client, meta):
    """Report virtual servers and the state of their real servers."""
    if meta.version_major < 6 or (meta.version_major == 6 and meta.version_minor < 4):
        # Before 6.4.0 there is no real_server_id.
        return []

    server_labels = ("vdom", "virtual_server", "id")
    virtual_info = Desc(
        "fortigate_lb_virtual_server_info",
        "Info metric regarding virtual servers",
        ("vdom", "name", "ip", "port", "type"),
    )
    real_info = Desc(
        "fortigate_lb_real_server_info",
        "Info metric regarding real servers",
        ("vdom", "virtual_server", "id", "ip", "port"),
    )
    real_mode = Desc(
        "fortigate_lb_real_server_mode",
        "Mode of this real server: active, standby or disabled",
        ("vdom", "virtual_server", "id", "mode"),
    )
    real_status = Desc(
        "fortigate_lb_real_server_status",
        "Status of this real server: up, down or unknown",
        ("vdom", "virtual_server", "id", "state"),
    )
    real_sessions = Desc(
        "fortigate_lb_real_server_active_sessions",
        "Number of sessions active on this real server",
        server_labels,
    )
    real_rtt = Desc(
        "fortigate_lb_real_server_rtt_seconds",
        "Round Trip Time (RTT) for this real server. A RTT of 1 ms or less is reported "
        "as 1 ms (0.001 s). A RTT of -1 indicates a parsing error.",
        server_labels,
    )
    real_bytes = Desc(
        "fortigate_lb_real_server_processed_bytes_total",
        "Number of bytes processed by this real server",
        server_labels,
    )

    gauge = ValueType.GAUGE
    metrics = []
    # Limited to 1000 entries; the API is not paginated here.
    responses = _responses(
        client, "api/v2/monitor/firewall/load-balance", "vdom=*&start=0&count=1000"
    )
    for response in responses:
        vdom = response.get("vdom", "")
        for virtual in response.get("results") or []:
            vname = virtual.get("virtual_server_name", "")
            metrics.append(
                virtual_info.metric(
                    gauge,
                    1,
                    vdom,
                    vname,
                    virtual.get("virtual_server_ip", ""),
                    str(int(virtual.get("virtual_server_port", 0))),
                    virtual.get("virtual_server_type", ""),
                )
            )
            for real in virtual.get("list") or []:
                rid = str(int(real.get("real_server_id", 0)))
                mode = real.get("mode", "")
                status = real.get("status", "")
                if status not in ("up", "down"):
                    status = "unknown"
                metrics.append(
                    real_info.metric(
                        gauge,
                        1,
                        vdom,
                        vname,
                        rid,
                        real.get("real_server_ip", ""),
                        str(int(real.get("real_server_port", 0))),
                    )
                )
                for candidate in ("active", "standby", "disabled"):
                    metrics.append(
                        real_mode.metric(
                            gauge, 1.0 if mode == candidate else 0.0, vdom, vname, rid, candidate
                        )
                    )
                for candidate in ("up", "down", "unknown"):
                    metrics.append(
                        real_status.metric(
                            gauge, 1.0 if status == candidate else 0.0, vdom, vname, rid, candidate
                        )
                    )
                metrics.append(
                    real_sessions.metric(gauge, real.get("active_sessions", 0), vdom, vname, rid)
                )
                metrics.append(
                    real_rtt.metric(gauge, parse_rtt(real.get("RTT", "")), vdom, vname, rid)
                )
                metrics.append(
                    real_bytes.metric(
                        ValueType.COUNTER, real.get("bytes_processed", 0), vdom, vname, rid
                    )
                )
    return metrics


def _config_map(responses):
    return {
        entry.get("uuid", ""): entry
        for response in responses
        for entry in response.get("results") or []
    }


def probe_firewall_policies(client, meta):
    """Report hit counts, traffic and sessions for every firewall policy."""
    hit_count = Desc(
        "fortigate_policy_hit_count_total", "Number of times a policy has been hit", _POLICY_LABELS
    )
    byte_count = Desc(
        "fortigate_policy_bytes_total",
        "Number of bytes that has passed through a policy",
        _POLICY_LABELS,
    )
    packet_count = Desc(
        "fortigate_policy_packets_total",
        "Number of packets that has passed through a policy",
        _POLICY_LABELS,
    )
    active_sessions = Desc(
        "fortigate_policy_active_sessions", "Number of active sessions for a policy", _POLICY_LABELS
    )

    # ip_version=ipv4 has no effect when combined policies are not active.
    stats4 = _responses(client, "api/v2/monitor/firewall/policy/select", "vdom=*&ip_version=ipv4")
    if not stats4:
        raise ProbeError("empty response from policy statistics")
    version = stats4[0].get("version", "")
    try:
        major, minor = parse_version(version)
    except ValueError as exc:
        log.error("Could not parse version number %r", version)
        raise ProbeError(str(exc)) from exc
    # From 6.4 on, IPv4 and IPv6 policies are combined.
    combined = major > 6 or (major == 6 and minor >= 4)

    if combined:
        stats6 = _responses(
            client, "api/v2/monitor/firewall/policy/select", "vdom=*&ip_version=ipv6"
        )
    else:
        stats6 = _responses(client, "api/v2/monitor/firewall/policy6/select", "vdom=*")

    query = "vdom=*&policyid|name|uuid|action|status"
    config4 = _config_map(_responses(client, "api/v2/cmdb/firewall/policy", query))
    if combined:
        config6 = config4
    else:
        config6 = _config_map(_responses(client, "api/v2/cmdb/firewall/policy6", query))

    def process(vdom, stats, configs, proto):
        policy_id = int(stats.get("policyid", 0))
        uuid = stats.get("uuid", "")
        name = "Implicit Deny"
        if policy_id > 0:
            entry = configs.get(uuid)
            if entry is None:
                log.warning("Failed to map %r to policy config - this should not happen", uuid)
                name = "<UNKNOWN>"
            else:
                name = entry.get("name", "")
        labels = (vdom, proto, name, uuid, str(policy_id))
        return [
            hit_count.metric(ValueType.COUNTER, stats.get("hit_count", 0), *labels),
            byte_count.metric(ValueType.COUNTER, stats.get("bytes", 0), *labels),
            packet_count.metric(ValueType.COUNTER, stats.get("packets", 0), *labels),
            active_sessions.metric(ValueType.GAUGE, stats.get("active_sessions", 0), *labels),
        ]

    metrics = []
    for responses, configs, proto in ((stats4, config4, "ipv4"), (stats6, config6, "ipv6")):
        for response in responses:
            vdom = response.get("vdom", "")
            for stats in response.get("results") or []:
                metrics.extend(process(vdom, stats, configs, proto))
    return metrics