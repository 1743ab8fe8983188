"""Tests for request-level dependency helpers."""

import pytest
from starlette.requests import Request

from keygate.dependencies import client_key


def _request(forwarded: str | None = None, peer: str = "203.0.113.9") -> Request:
    headers = []
    if forwarded is not None:
        headers.append((b"x-forwarded-for", forwarded.encode()))
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": headers,
        "client": (peer, 51000),
    })


class TestClientKey:
    def test_peer_without_header(self):
        assert client_key(_request(), trusted_proxies=0) == "203.0.113.9"

    def test_header_ignored_without_trusted_proxies(self):
        assert client_key(_request("10.0.0.1"), trusted_proxies=0) == "203.0.113.9"

    def test_hop_added_by_trusted_proxy(self):
        request = _request("10.0.0.1, 198.51.100.7")
        assert client_key(request, trusted_proxies=1) == "198.51.100.7"

    @pytest.mark.parametrize(
        "forwarded,expected",
        [
            ("spoofed, 198.51.100.7, 192.0.2.1", "198.51.100.7"),
            ("198.51.100.7", "198.51.100.7"),
        ],
    )
    def test_two_trusted_proxies(self, forwarded, expected):
        assert client_key(_request(forwarded), trusted_proxies=2) == expected
