"""Throttling identifier helpers.

Login attempts are throttled on two keys: the client IP address and the
account email. Both are normalized and namespaced (``ip:`` / ``email:``) so the
two key spaces can never collide inside one limiter table.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Iterable, Mapping

IP_PREFIX = "ip:"
EMAIL_PREFIX = "email:"
UNKNOWN_IP = "unknown-ip"

# IPv6 textual form is at most 45 characters (IPv4-mapped addresses)
MAX_IP_LENGTH = 45

_IP_DISALLOWED_CHARS = re.compile(r"[^0-9a-fA-F:.]")


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address.

    Examples:
        >>> normalize_email("  Alice@Example.COM ")
        'alice@example.com'
    """
    return email.strip().lower()


def sanitize_ip(raw_ip: str) -> str:
    """Strip everything that cannot appear in an IPv4/IPv6 address.

    Examples:
        >>> sanitize_ip(" 203.0.113.7\\r\\n")
        '203.0.113.7'
        >>> sanitize_ip("::1")
        '::1'
    """
    return _IP_DISALLOWED_CHARS.sub("", raw_ip)[:MAX_IP_LENGTH]


def client_ip_from_headers(
    headers: Mapping[str, str],
    header_names: Iterable[str],
    peer_host: str | None = None,
) -> str:
    """Resolve the client IP for a request.

    Proxy headers are consulted in the given order; for comma separated values
    (``X-Forwarded-For``) the first, client-most address wins. When no header
    yields an address the socket peer is used, then ``"unknown-ip"``. Values
    that do not parse as an IPv4/IPv6 address (``"testclient"``, ``"unknown"``)
    are skipped.

    Args:
        headers: Request headers (case-insensitive mapping in practice).
        header_names: Header names to consult, in priority order.
        peer_host: Host of the TCP peer, if known.

    Returns:
        Sanitized IP address, or ``"unknown-ip"``.
    """
    for name in header_names:
        value = headers.get(name)
        if not value:
            continue
        candidate = _parse_ip(value.split(",")[0].strip())
        if candidate:
            return candidate

    if peer_host:
        candidate = _parse_ip(peer_host)
        if candidate:
            return candidate

    return UNKNOWN_IP


def _parse_ip(raw: str) -> str | None:
    candidate = sanitize_ip(raw)
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def ip_identifier(ip_address: str) -> str:
    return f"{IP_PREFIX}{ip_address}"


def email_identifier(email: str) -> str:
    return f"{EMAIL_PREFIX}{normalize_email(email)}"
