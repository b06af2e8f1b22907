"""Token-authenticated HTTP client for the FortiOS REST API."""

from __future__ import annotations

import json
import ssl
from urllib.parse import urlsplit, urlunsplit

import requests


class FortiHTTPError(Exception):
    """Raised when a request to a Fortigate device fails."""


class FortiTokenClient:
    """Fetches JSON from a Fortigate using a bearer API token.

    ``transport`` is any object with a ``get(url, headers=...)`` method that
    returns a response carrying ``status_code`` and ``content``, such as a
    ``requests.Session``.
    """

    def __init__(self, target, transport, token):
        self._target = str(target)
        self._transport = transport
        self._token = token

    def _url(self, path, query):
        parts = urlsplit(self._target)
        return urlunsplit((parts.scheme, parts.netloc, path, query, parts.fragment))

    def get(self, path, query=""):
        """GET ``path`` with the raw ``query`` and return the decoded JSON."""
        url = self._url(path, query)
        try:
            response = self._transport.get(
                url, headers={"Authorization": f"Bearer {self._token}"}
            )
        except (requests.RequestException, OSError) as exc:
            raise FortiHTTPError(str(exc)) from exc
        if response.status_code != 200:
            raise FortiHTTPError(
                f'response code was {response.status_code}, expected 200 (path: "{path}")'
            )
        try:
            return json.loads(response.content)
        except ValueError as exc:
            raise FortiHTTPError(f'invalid JSON from "{path}": {exc}') from exc

    def __str__(self):
        return self._target

    def __repr__(self):
        return f"FortiTokenClient({self._target!r})"


def new_forti_client(target, transport, config):
    """Create a client for ``target`` using the credentials in ``config``."""
    target = str(target)
    auth = config.auth_keys.get(target)
    if auth is None:
        raise FortiHTTPError(f'no API authentication registered for "{target}"')
    if auth.token:
        if urlsplit(target).scheme != "https":
            raise FortiHTTPError("FortiOS only supports token for HTTPS connections")
        return FortiTokenClient(target, transport, auth.token)
    raise FortiHTTPError(f'invalid authentication data for "{target}"')


def make_ssl_context(config):
    """Build the TLS context: system roots plus extra CAs, optionally unverified."""
    context = ssl.create_default_context()
    for cert in config.tls_extra_cas:
        try:
            context.load_verify_locations(cadata=cert.content.decode("ascii"))
        except (ssl.SSLError, ValueError, UnicodeDecodeError) as exc:
            raise FortiHTTPError(
                f'failed to append certs from PEM "{cert.path}", unknown error'
            ) from exc
    if config.tls_insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context