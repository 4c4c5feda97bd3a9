"""Tests for API metadata parsing."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from pydantic import ValidationError

from gh_rest.http.api_info import ApiInfo, ApiInfoMiddleware, parse_link_header
from gh_rest.http.envelope import ApiResponse, Envelope, Request, Response

RAILS_ISSUES = "https://api.github.com/repos/rails/rails/issues"
RAILS_LINK = (
    f'<{RAILS_ISSUES}?page=4&per_page=5>; rel="next", '
    f'<{RAILS_ISSUES}?page=131&per_page=5>; rel="last", '
    f'<{RAILS_ISSUES}?page=1&per_page=5>; rel="first", '
    f'<{RAILS_ISSUES}?page=2&per_page=5>; rel="prev"'
)


class TestApiInfoFromHeaders:
    """Tests for ApiInfo.from_headers."""

    def test_parses_all_fields(self) -> None:
        """Test parsing a full set of GitHub headers."""
        headers = {
            "X-Accepted-OAuth-Scopes": "user",
            "X-OAuth-Scopes": "user, public_repo, repo, gist",
            "X-RateLimit-Limit": "5000",
            "X-RateLimit-Remaining": "4997",
            "X-RateLimit-Reset": "1372700873",
            "ETag": '"5634b0b187fd2e91e3126a75006cc4fa"',
        }

        info = ApiInfo.from_headers(headers)

        assert info.accepted_oauth_scopes == ["user"]
        assert info.oauth_scopes == ["user", "public_repo", "repo", "gist"]
        assert info.rate_limit == 5000
        assert info.rate_limit_remaining == 4997
        assert info.rate_limit_reset == datetime.fromtimestamp(1372700873, tz=UTC)
        assert info.etag == '"5634b0b187fd2e91e3126a75006cc4fa"'

    def test_header_names_case_insensitive(self) -> None:
        """Test that lower-case header names are recognised."""
        info = ApiInfo.from_headers({"x-ratelimit-limit": "60", "etag": "W/abc"})
        assert info.rate_limit == 60
        assert info.etag == "W/abc"

    def test_empty_headers(self) -> None:
        """Test defaults for a response without metadata headers."""
        info = ApiInfo.from_headers({})

        assert info.oauth_scopes == []
        assert info.accepted_oauth_scopes == []
        assert info.etag is None
        assert info.rate_limit == 0
        assert info.rate_limit_remaining == 0
        assert info.rate_limit_reset is None
        assert info.links == {}

    def test_bad_integers_ignored(self) -> None:
        """Test that unparseable integer headers become zero."""
        info = ApiInfo.from_headers(
            {
                "X-RateLimit-Limit": "lots",
                "X-RateLimit-Remaining": "",
                "X-RateLimit-Reset": "soon",
            }
        )
        assert info.rate_limit == 0
        assert info.rate_limit_remaining == 0
        assert info.rate_limit_reset is None

    def test_empty_scopes(self) -> None:
        """Test that an empty scope header yields no scopes."""
        assert ApiInfo.from_headers({"X-OAuth-Scopes": ""}).oauth_scopes == []

    def test_server_time_difference(self) -> None:
        """Test clock skew computed from the Date header."""
        received = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)
        info = ApiInfo.from_headers({"Date": "Mon, 01 Jan 2024 12:00:05 GMT"}, received)
        assert info.server_time_difference == timedelta(seconds=5)

    def test_bad_date_ignored(self) -> None:
        """Test that an unparseable Date header leaves no skew."""
        info = ApiInfo.from_headers({"Date": "yesterday"}, datetime.now(UTC))
        assert info.server_time_difference == timedelta(0)

    def test_is_immutable(self) -> None:
        """Test that ApiInfo cannot be modified."""
        info = ApiInfo.from_headers({"X-RateLimit-Limit": "1"})
        with pytest.raises(ValidationError):
            info.rate_limit = 2  # type: ignore[misc]

    def test_clone_is_equal_but_distinct(self) -> None:
        """Test that clone returns an independent equal copy."""
        info = ApiInfo.from_headers({"Link": RAILS_LINK, "X-OAuth-Scopes": "repo"})
        copy = info.clone()

        assert copy == info
        assert copy is not info
        assert copy.links is not info.links
        assert copy.oauth_scopes is not info.oauth_scopes


class TestLinks:
    """Tests for Link header parsing."""

    def test_rails_links(self) -> None:
        """Test all four relations from a real issues listing."""
        info = ApiInfo.from_headers({"Link": RAILS_LINK})

        assert info.next_page_url == f"{RAILS_ISSUES}?page=4&per_page=5"
        assert info.prev_page_url == f"{RAILS_ISSUES}?page=2&per_page=5"
        assert info.first_page_url == f"{RAILS_ISSUES}?page=1&per_page=5"
        assert info.last_page_url == f"{RAILS_ISSUES}?page=131&per_page=5"
        assert info.get_last_page() == 131

    def test_no_last_link(self) -> None:
        """Test get_last_page without a last relation."""
        info = ApiInfo.from_headers({"Link": f'<{RAILS_ISSUES}?page=2>; rel="next"'})
        assert info.get_last_page() == -1

    def test_last_link_without_page(self) -> None:
        """Test get_last_page when the last link has no page parameter."""
        info = ApiInfo.from_headers({"Link": f'<{RAILS_ISSUES}?per_page=5>; rel="last"'})
        assert info.get_last_page() == 0

    def test_missing_header(self) -> None:
        """Test that no Link header means no relations."""
        assert parse_link_header(None) == {}
        assert parse_link_header("") == {}

    def test_malformed_entry_skipped(self) -> None:
        """Test that a malformed entry does not discard the others."""
        links = parse_link_header(
            f'garbage; rel="next", <{RAILS_ISSUES}?page=9>; rel="last"'
        )
        assert links == {"last": f"{RAILS_ISSUES}?page=9"}

    def test_unknown_relation_ignored(self) -> None:
        """Test that relations other than next/prev/first/last are dropped."""
        links = parse_link_header(f'<{RAILS_ISSUES}?page=2>; rel="alternate"')
        assert links == {}

    def test_duplicate_relation_last_wins(self) -> None:
        """Test that a repeated relation keeps the final URI."""
        links = parse_link_header(
            f'<{RAILS_ISSUES}?page=2>; rel="next", <{RAILS_ISSUES}?page=3>; rel="next"'
        )
        assert links == {"next": f"{RAILS_ISSUES}?page=3"}

    def test_relation_case_insensitive(self) -> None:
        """Test that relation names are matched case-insensitively."""
        links = parse_link_header(f'<{RAILS_ISSUES}?page=2>; rel="NEXT"')
        assert links == {"next": f"{RAILS_ISSUES}?page=2"}


class TestApiInfoMiddleware:
    """Tests for ApiInfoMiddleware."""

    @pytest.mark.asyncio
    async def test_attaches_api_info(self) -> None:
        """Test that responses gain parsed ApiInfo."""

        class Terminal:
            async def invoke(self, envelope: Envelope[Any]) -> "Terminal":
                envelope.response.status_code = 200
                envelope.response.headers = {"X-RateLimit-Remaining": "42", "Link": RAILS_LINK}
                return self

        envelope: Envelope[Any] = Envelope(
            request=Request(method="GET", base_address="https://api.github.com/", endpoint="x")
        )
        await ApiInfoMiddleware(Terminal()).invoke(envelope)

        assert isinstance(envelope.response, ApiResponse)
        assert envelope.response.api_info is not None
        assert envelope.response.api_info.rate_limit_remaining == 42
        assert envelope.response.api_info.get_last_page() == 131

    @pytest.mark.asyncio
    async def test_upgrades_replaced_response(self) -> None:
        """Test that a response replaced by an inner stage is still upgraded."""

        class Replacing:
            async def invoke(self, envelope: Envelope[Any]) -> "Replacing":
                envelope.response = Response(status_code=200, headers={"ETag": "abc"})
                return self

        envelope: Envelope[Any] = Envelope(
            request=Request(method="GET", base_address="https://api.github.com/", endpoint="x")
        )
        await ApiInfoMiddleware(Replacing()).invoke(envelope)

        assert isinstance(envelope.response, ApiResponse)
        assert envelope.response.api_info is not None
        assert envelope.response.api_info.etag == "abc"
