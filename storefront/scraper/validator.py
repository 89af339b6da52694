"""SSRF guard for user-supplied product URLs.

``validate_url`` is a pure predicate over the URL string: it never resolves
DNS and never touches the network.  The fetcher calls it on the target URL and
again on every redirect hop, since redirects are attacker-controlled.
"""

from __future__ import annotations

import ipaddress
import re
import socket
from urllib.parse import SplitResult, urlsplit

from storefront.errors import InvalidUrl

_ALLOWED_SCHEMES = {"http", "https"}

_BLOCKED_HOSTS = {
    "localhost",
    "127.0.0.1",
    "::1",
    # Cloud metadata endpoints
    "169.254.169.254",
    "metadata.google.internal",
    "metadata.goog",
}

_BLOCKED_SUFFIXES = (".internal", ".local", ".localhost", ".corp")

_BLOCKED_NETWORKS = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("100.64.0.0/10"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.0.0.0/24"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("198.18.0.0/15"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

# Hosts made only of digits, dots and hex markers may be IPv4 in a
# non-canonical spelling (``2130706433``, ``0x7f.1``, ``127.1``).
_NUMERIC_HOST = re.compile(r"^[0-9a-fx.]+$", re.IGNORECASE)


def _parse_ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Return *host* as an IP address, or ``None`` if it is a DNS name."""
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    if _NUMERIC_HOST.match(host) and any(c.isdigit() for c in host):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(host))
        except OSError:
            return None
    return None


def _is_blocked_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip.version == net.version and ip in net for net in _BLOCKED_NETWORKS)


def _blocked_reason(host: str) -> str | None:
    if host in _BLOCKED_HOSTS:
        return f"Host {host!r} is not allowed"
    if host.endswith(_BLOCKED_SUFFIXES):
        return f"Internal host {host!r} is not allowed"
    ip = _parse_ip(host)
    if ip is not None:
        if str(ip) in _BLOCKED_HOSTS or _is_blocked_ip(ip):
            return f"Private or reserved address {host!r} is not allowed"
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_url(url: str) -> SplitResult:
    """Return the parsed *url* if it is safe to fetch.

    Raises:
        InvalidUrl: For a non-HTTP(S) scheme, a missing host, embedded
            credentials, or a host that is loopback, private, link-local,
            reserved, a cloud metadata endpoint, or an internal-only name.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrl("URL is required")

    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
        _ = parts.port  # raises on an out-of-range port
    except ValueError as exc:
        raise InvalidUrl(f"Malformed URL: {exc}") from exc

    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidUrl("Only http and https URLs are allowed")
    if not host:
        raise InvalidUrl("URL has no host")
    if parts.username is not None or parts.password is not None:
        raise InvalidUrl("URLs with embedded credentials are not allowed")

    host = host.rstrip(".").lower()
    reason = _blocked_reason(host)
    if reason:
        raise InvalidUrl(reason)
    return parts


def is_safe_url(url: str) -> bool:
    """Boolean form of :func:`validate_url`."""
    try:
        validate_url(url)
    except InvalidUrl:
        return False
    return True
