"""Parsing of FortiOS version strings."""

import re

_VERSION_RE = re.compile(r"v[ \t]*([+-]?\d+)\.[ \t]*([+-]?\d+)\.")


def parse_version(ver):
    """Return ``(major, minor)`` from a FortiOS version such as ``v6.4.4``.

    Raises ValueError when the string does not start with ``v<major>.<minor>.``.
    """
    match = _VERSION_RE.match(ver)
    if match is None:
        raise ValueError(f"cannot parse version number {ver!r}")
    return int(match.group(1)), int(match.group(2))