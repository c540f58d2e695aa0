"""Unit tests for the path URL codec."""

import pytest

from branchfeed.paths.codec import (
    build_share_url,
    decode_path,
    encode_path,
    path_from_share_url,
)
from tests.helpers.builders import path_of


class TestEncodePath:
    """Tests for encode_path."""

    def test_comma_joined(self) -> None:
        """Test tokens are comma-joined."""
        assert encode_path(path_of("ABA")) == "A,B,A"

    def test_root_is_empty(self) -> None:
        """Test the root encodes as an empty token."""
        assert encode_path(()) == ""


class TestDecodePath:
    """Tests for lenient decode_path."""

    def test_round_trip(self) -> None:
        """Test decoding an encoded path returns it unchanged."""
        path = path_of("BAAB")
        assert decode_path(encode_path(path)) == path

    def test_invalid_tokens_dropped_and_truncated(self) -> None:
        """Test junk is dropped, case folded and the result cut to max_depth."""
        assert decode_path("a,b,x,b", max_depth=3) == path_of("ABB")

    def test_whitespace_and_escapes(self) -> None:
        """Test URL-escaped and padded tokens are cleaned up."""
        assert decode_path("A%2C%20b%2C%20A") == path_of("ABA")

    @pytest.mark.parametrize("token", [None, "", ",,,", "xyz"])
    def test_empty_results(self, token: str | None) -> None:
        """Test tokens with nothing usable decode to the root."""
        assert decode_path(token) == ()

    def test_zero_max_depth(self) -> None:
        """Test max_depth 0 always yields the root."""
        assert decode_path("A,B", max_depth=0) == ()


class TestShareUrl:
    """Tests for share link helpers."""

    def test_build_with_path(self) -> None:
        """Test the path is carried in the query string."""
        url = build_share_url("https://example.test/", "story-1", path_of("AB"))
        assert url == "https://example.test/story/story-1?path=A,B"

    def test_build_without_path(self) -> None:
        """Test the root link has no query."""
        assert build_share_url("https://example.test", "s 1") == "https://example.test/story/s%201"

    def test_path_from_share_url(self) -> None:
        """Test the path is read back from a link."""
        url = build_share_url("https://example.test", "story-1", path_of("BBA"))
        assert path_from_share_url(url) == path_of("BBA")
        assert path_from_share_url(url, max_depth=1) == path_of("B")

    def test_link_without_path(self) -> None:
        """Test links without a path decode to the root."""
        assert path_from_share_url("https://example.test/story/s") == ()
