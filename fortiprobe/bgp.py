"""Probes for BGP neighbors and the paths learned from them."""

from __future__ import annotations

import logging
from collections import Counter

from .client import FortiHTTPError
from .metrics import Desc, ProbeError, ValueType

log = logging.getLogger(__name__)

_NEIGHBOR_LABELS = ("vdom", "remote_as", "state", "admin_status", "local_ip", "neighbor_ip")

_BGP_STATES = {
    "Idle": 1.0,
    "Connect": 2.0,
    "Active": 3.0,
    "Open sent": 4.0,
    "Open confirm": 5.0,
    "Established": 6.0,
}


def _fetch(client, path, query):
    try:
        return client.get(path, query)
    except FortiHTTPError as exc:
        log.error("Error: %s", exc)
        raise ProbeError(str(exc)) from exc


def _responses(payload, path):
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise ProbeError(f"unexpected response from {path!r}: expected a list")
    for response in payload:
        if not isinstance(response, dict):
            raise ProbeError(f"unexpected response from {path!r}: expected objects")
    return payload


def bgp_state_to_number(state):
    """Map a BGP session state name to its number (0 when unknown)."""
    return _BGP_STATES.get(state, 0.0)


def _probe_paths(client, meta, max_paths, family, path):
    if max_paths == 0:
        return []
    if meta.version_major < 7:
        # The endpoint does not exist before FortiOS 7.0.0.
        return []

    paths_desc = Desc(
        f"fortigate_bgp_neighbor_{family}_paths",
        "Count of paths received from an BGP neighbor",
        ("vdom", "neighbor_ip"),
    )
    best_desc = Desc(
        f"fortigate_bgp_neighbor_{family}_best_paths",
        "Count of best paths for an BGP neighbor",
        ("vdom", "neighbor_ip"),
    )

    responses = _responses(_fetch(client, path, f"vdom=*&count={max_paths}"), path)

    paths = Counter()
    best = Counter()
    for response in responses:
        results = response.get("results") or []
        if len(results) > max_paths:
            message = (
                f"Received more BGP Paths than maximum ({len(results)} > {max_paths}) "
                "allowed, ignoring metric ..."
            )
            log.error("Error: %s", message)
            raise ProbeError(message)
        vdom = response.get("vdom", "")
        for route in results:
            key = (vdom, route.get("learned_from", ""))
            paths[key] += 1
            if route.get("is_best", False):
                best[key] += 1

    metrics = [
        paths_desc.metric(ValueType.GAUGE, count, vdom, source)
        for (vdom, source), count in paths.items()
    ]
    metrics.extend(
        best_desc.metric(ValueType.GAUGE, count, vdom, source)
        for (vdom, source), count in best.items()
    )
    return metrics


def probe_bgp_neighbor_paths_ipv4(client, meta, max_paths):
    """Count IPv4 paths and best paths per BGP neighbor."""
    return _probe_paths(client, meta, max_paths, "ipv4", "api/v2/monitor/router/bgp/paths")


def probe_bgp_neighbor_paths_ipv6(client, meta, max_paths):
    """Count IPv6 paths and best paths per BGP neighbor."""
    return _probe_paths(client, meta, max_paths, "ipv6", "api/v2/monitor/router/bgp/paths6")


def _probe_neighbors(client, meta, family, path):
    if meta.version_major < 7:
        # The endpoint does not exist before FortiOS 7.0.0.
        return []

    desc = Desc(
        f"fortigate_bgp_neighbor_{family}_info",
        f"Configured bgp neighbor over {family}, return state as value "
        "(1 - Idle, 2 - Connect, 3 - Active, 4 - Open sent, 5 - Open confirm, 6 - Established)",
        _NEIGHBOR_LABELS,
    )

    metrics = []
    for response in _responses(_fetch(client, path, "vdom=*"), path):
        vdom = response.get("vdom", "")
        for peer in response.get("results") or []:
            state = peer.get("state", "")
            metrics.append(
                desc.metric(
                    ValueType.GAUGE,
                    bgp_state_to_number(state),
                    vdom,
                    str(int(peer.get("remote_as", 0))),
                    state,
                    "true" if peer.get("admin_status", False) else "false",
                    peer.get("local_ip", ""),
                    peer.get("neighbor_ip", ""),
                )
            )
    return metrics


def probe_bgp_neighbors_ipv4(client, meta):
    """Report configured IPv4 BGP neighbors with their state as value."""
    return _probe_neighbors(client, meta, "ipv4", "api/v2/monitor/router/bgp/neighbors")


def probe_bgp_neighbors_ipv6(client, meta):
    """Report configured IPv6 BGP neighbors with their state as value."""
    return _probe_neighbors(client, meta, "ipv6", "api/v2/monitor/router/bgp/neighbors6")