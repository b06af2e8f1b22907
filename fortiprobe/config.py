"""Command-line options and the authentication map of the exporter."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

log = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded."""


@dataclass
class Probes:
    """Probe names to include or exclude for a target."""

    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


@dataclass
class TargetAuth:
    """Authentication data registered for one target."""

    token: str = ""
    probes: Probes = field(default_factory=Probes)


@dataclass
class LocalCert:
    """An extra CA certificate bundle read from disk."""

    path: str
    content: bytes


@dataclass
class ExporterConfig:
    """The settings the exporter runs with."""

    auth_keys: dict[str, TargetAuth] = field(default_factory=dict)
    listen: str = ":9710"
    scrape_timeout: int = 30
    tls_timeout: int = 10
    tls_insecure: bool = False
    tls_extra_cas: list[LocalCert] = field(default_factory=list)
    max_bgp_paths: int = 10000
    max_vpn_users: int = 0


def _scalar(value, what):
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise ConfigError(f"expected a scalar for {what}, got {type(value).__name__}")
    return str(value)


def _string_list(value, what):
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"expected a list for {what}")
    return [_scalar(item, what) for item in value]


def _target_auth(target, entry):
    if entry is None:
        return TargetAuth()
    if not isinstance(entry, dict):
        raise ConfigError(f"authentication entry for {target!r} must be a mapping")
    probes_raw = entry.get("probes")
    if probes_raw is None:
        probes = Probes()
    elif isinstance(probes_raw, dict):
        probes = Probes(
            include=_string_list(probes_raw.get("include"), "probes.include"),
            exclude=_string_list(probes_raw.get("exclude"), "probes.exclude"),
        )
    else:
        raise ConfigError(f"probes for {target!r} must be a mapping")
    return TargetAuth(token=_scalar(entry.get("token"), "token"), probes=probes)


def parse_auth_keys(data):
    """Parse a YAML authentication map into ``{target: TargetAuth}``."""
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse API authentication map: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("API authentication map must be a mapping of targets")
    return {
        _scalar(target, "target"): _target_auth(target, entry)
        for target, entry in raw.items()
    }


def build_parser():
    """Return the argument parser for the exporter options."""
    parser = argparse.ArgumentParser(
        prog="fortiprobe",
        description="Prometheus exporter for Fortigate devices.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-auth-file", "--auth-file", dest="auth_file", default="fortigate-key.yaml",
        help="file containing the authentication map to use when connecting to a Fortigate device",
    )
    parser.add_argument(
        "-listen", "--listen", dest="listen", default=":9710",
        help="address to listen on",
    )
    parser.add_argument(
        "-scrape-timeout", "--scrape-timeout", dest="scrape_timeout", type=int, default=30,
        help="max seconds to allow a scrape to take",
    )
    parser.add_argument(
        "-https-timeout", "--https-timeout", dest="https_timeout", type=int, default=10,
        help="TLS Handshake timeout in seconds",
    )
    parser.add_argument(
        "-insecure", "--insecure", dest="insecure", action="store_true",
        help="Allow insecure certificates",
    )
    parser.add_argument(
        "-extra-ca-certs", "--extra-ca-certs", dest="extra_ca_certs", default="",
        help="comma-separated files containing extra PEMs to trust for TLS connections "
        "in addition to the system trust store",
    )
    parser.add_argument(
        "-max-bgp-paths", "--max-bgp-paths", dest="max_bgp_paths", type=int, default=10000,
        help="How many BGP Paths to receive when counting routes, needs to be greater than "
        "or equal to the number of routes or metrics will not be generated",
    )
    parser.add_argument(
        "-max-vpn-users", "--max-vpn-users", dest="max_vpn_users", type=int, default=0,
        help="How many VPN Users to receive when counting users, needs to be greater than "
        "or equal the number of users or metrics will not be generated (0 eq. none by default)",
    )
    return parser


def load_config(argv=None):
    """Parse options, read the authentication map and extra CA files."""
    args = build_parser().parse_args(argv)

    try:
        data = Path(args.auth_file).read_bytes()
    except OSError as exc:
        raise ConfigError(f"Failed to read API authentication map file: {exc}") from exc
    auth_keys = parse_auth_keys(data)
    log.info("Loaded %d API keys", len(auth_keys))

    extra_cas = []
    for path in args.extra_ca_certs.split(","):
        if not path:
            continue
        try:
            content = Path(path).read_bytes()
        except OSError as exc:
            raise ConfigError(f"Failed to read extra CA file {path!r}: {exc}") from exc
        extra_cas.append(LocalCert(path=path, content=content))

    return ExporterConfig(
        auth_keys=auth_keys,
        listen=args.listen,
        scrape_timeout=args.scrape_timeout,
        tls_timeout=args.https_timeout,
        tls_insecure=args.insecure,
        tls_extra_cas=extra_cas,
        max_bgp_paths=args.max_bgp_paths,
        max_vpn_users=args.max_vpn_users,
    )