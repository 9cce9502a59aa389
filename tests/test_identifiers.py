"""Tests for throttling identifier helpers."""

import pytest

from authguard.utils.identifiers import (
    UNKNOWN_IP,
    client_ip_from_headers,
    email_identifier,
    ip_identifier,
    normalize_email,
    sanitize_ip,
)

HEADERS = ["x-forwarded-for", "x-real-ip", "cf-connecting-ip"]


def test_normalize_email() -> None:
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("203.0.113.7", "203.0.113.7"),
        ("2001:db8::1", "2001:db8::1"),
        (" 203.0.113.7\r\n", "203.0.113.7"),
        ("1.2.3.4; DROP TABLE", "1.2.3.4DABE"),
        ("f" * 100, "f" * 45),
    ],
)
def test_sanitize_ip(raw: str, expected: str) -> None:
    assert sanitize_ip(raw) == expected


def test_forwarded_for_uses_first_address() -> None:
    headers = {"x-forwarded-for": "198.51.100.1, 10.0.0.1, 10.0.0.2"}

    assert client_ip_from_headers(headers, HEADERS, "10.0.0.9") == "198.51.100.1"


def test_headers_are_consulted_in_order() -> None:
    headers = {"x-real-ip": "198.51.100.2", "cf-connecting-ip": "198.51.100.3"}

    assert client_ip_from_headers(headers, HEADERS) == "198.51.100.2"


def test_falls_back_to_peer_host() -> None:
    assert client_ip_from_headers({}, HEADERS, "192.0.2.10") == "192.0.2.10"


def test_unknown_when_nothing_usable() -> None:
    headers = {"x-forwarded-for": "unknown"}

    assert client_ip_from_headers(headers, HEADERS, None) == UNKNOWN_IP


def test_namespaced_identifiers() -> None:
    assert ip_identifier("192.0.2.10") == "ip:192.0.2.10"
    assert email_identifier(" Bob@Example.com") == "email:bob@example.com"


def test_non_ip_peer_host_is_unknown() -> None:
    assert client_ip_from_headers({}, HEADERS, "testclient") == UNKNOWN_IP


def test_malformed_header_falls_through_to_next_source() -> None:
    headers = {"x-forwarded-for": "1.2.3.4; DROP TABLE", "x-real-ip": "198.51.100.2"}

    assert client_ip_from_headers(headers, HEADERS, "192.0.2.10") == "198.51.100.2"
