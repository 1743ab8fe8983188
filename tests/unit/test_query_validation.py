"""Tests for search query validation."""

import pytest

from keygate.core.errors import InvalidArgument
from keygate.core.query_validation import sanitize_input, validate_search


class TestValidateSearch:
    @pytest.mark.parametrize(
        "search_type,query,expected",
        [
            ("email", "a@x.com", ("email", "a@x.com")),
            ("EMAIL", "  a@x.com ", ("email", "a@x.com")),
            ("domain", "example.com", ("domain", "example.com")),
            ("ip", "192.168.1.20", ("ip", "192.168.1.20")),
            ("phone", "+1 (555) 010-9999", ("phone", "15550109999")),
            ("username", "john_doe-99", ("username", "john_doe-99")),
        ],
    )
    def test_valid(self, search_type, query, expected):
        assert validate_search(search_type, query) == expected

    @pytest.mark.parametrize(
        "search_type,query",
        [
            ("email", "not-an-email"),
            ("domain", "-bad.com"),
            ("ip", "256.1.1.1"),
            ("phone", "12345"),
            ("username", "ab"),
            ("username", "<script>"),
        ],
    )
    def test_invalid(self, search_type, query):
        with pytest.raises(InvalidArgument):
            validate_search(search_type, query)

    def test_unsupported_type(self):
        with pytest.raises(InvalidArgument, match="Supported types"):
            validate_search("ssn", "123")

    @pytest.mark.parametrize("search_type,query", [("", "x"), ("email", ""), (None, None)])
    def test_missing(self, search_type, query):
        with pytest.raises(InvalidArgument):
            validate_search(search_type, query)


def test_sanitize_input():
    assert sanitize_input("<a href='/x'>") == "&lt;a href=&#x27;&#x2F;x&#x27;&gt;"
