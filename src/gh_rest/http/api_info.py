"""API metadata parsed from response headers.

Covers OAuth scopes, rate limits, the ETag and ``Link`` pagination relations.
Parsing never raises: a missing or unparseable header leaves the matching
field at its zero value (empty list, 0, None).
"""

import logging
import re
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gh_rest.http.builder import Middleware
from gh_rest.http.envelope import ApiResponse, Envelope

logger = logging.getLogger(__name__)

LINK_RELATIONS = ("next", "prev", "first", "last")

_LINK_URI_PATTERN = re.compile(r"<([^>]+)>")
_LINK_REL_PATTERN = re.compile(r'rel="(next|prev|first|last)"', re.IGNORECASE)
_PAGE_PATTERN = re.compile(r"[?&]page=(\d+)", re.IGNORECASE)


class ApiInfo(BaseModel):
    """Read-only metadata attached to an API response."""

    model_config = ConfigDict(frozen=True)

    oauth_scopes: list[str] = Field(default_factory=list)
    accepted_oauth_scopes: list[str] = Field(default_factory=list)
    etag: str | None = None
    rate_limit: int = 0
    rate_limit_remaining: int = 0
    rate_limit_reset: datetime | None = None
    links: dict[str, str] = Field(default_factory=dict)
    server_time_difference: timedelta = timedelta(0)

    @classmethod
    def from_headers(
        cls,
        headers: Mapping[str, str],
        received_at: datetime | None = None,
    ) -> "ApiInfo":
        """Parse API metadata from response headers.

        Header names are matched case-insensitively. Integer headers that are
        missing or unparseable are reported as 0.

        Args:
            headers: Response headers.
            received_at: When the response arrived, used to compute the clock
                difference to the server's ``Date`` header.

        Returns:
            Parsed ApiInfo.
        """
        lowered = {key.lower(): value for key, value in headers.items()}

        accepted_scopes = _parse_scopes(lowered.get("x-accepted-oauth-scopes"))
        scopes = _parse_scopes(lowered.get("x-oauth-scopes"))
        rate_limit = _parse_int(lowered.get("x-ratelimit-limit"))
        remaining = _parse_int(lowered.get("x-ratelimit-remaining"))
        etag = lowered.get("etag")
        links = parse_link_header(lowered.get("link"))

        reset = None
        reset_timestamp = _parse_int(lowered.get("x-ratelimit-reset"))
        if reset_timestamp > 0:
            reset = datetime.fromtimestamp(reset_timestamp, tz=UTC)

        return cls(
            oauth_scopes=scopes,
            accepted_oauth_scopes=accepted_scopes,
            etag=etag,
            rate_limit=rate_limit,
            rate_limit_remaining=remaining,
            rate_limit_reset=reset,
            links=links,
            server_time_difference=_server_time_difference(lowered.get("date"), received_at),
        )

    @property
    def next_page_url(self) -> str | None:
        return self.links.get("next")

    @property
    def prev_page_url(self) -> str | None:
        return self.links.get("prev")

    @property
    def first_page_url(self) -> str | None:
        return self.links.get("first")

    @property
    def last_page_url(self) -> str | None:
        return self.links.get("last")

    def get_last_page(self) -> int:
        """Page number of the ``last`` relation.

        Returns:
            -1 if there is no ``last`` link, 0 if it has no ``page``
            parameter, otherwise the page number.
        """
        last = self.last_page_url
        if last is None:
            return -1
        match = _PAGE_PATTERN.search(last)
        if not match:
            return 0
        return int(match.group(1))

    def clone(self) -> "ApiInfo":
        """Deep copy, safe to hand out across tasks."""
        return self.model_copy(deep=True)


def _parse_scopes(value: str | None) -> list[str]:
    if not value:
        return []
    return [scope.strip() for scope in value.split(",") if scope.strip()]


def _parse_int(value: str | None) -> int:
    if value is None:
        return 0
    try:
        return int(value.strip())
    except ValueError:
        logger.debug("Ignoring unparseable integer header value %r", value)
        return 0


def _server_time_difference(date_header: str | None, received_at: datetime | None) -> timedelta:
    if not date_header or received_at is None:
        return timedelta(0)
    try:
        server_date = parsedate_to_datetime(date_header)
    except (TypeError, ValueError):
        return timedelta(0)
    if server_date.tzinfo is None:
        server_date = server_date.replace(tzinfo=UTC)
    return server_date - received_at


def parse_link_header(value: str | None) -> dict[str, str]:
    """Parse an RFC 5988 ``Link`` header into a relation -> URI map.

    Only the ``next``, ``prev``, ``first`` and ``last`` relations are kept.
    An entry without a recognized relation or a bracketed URI is skipped and
    parsing continues with the next entry. If a relation appears twice the
    last occurrence wins.

    Args:
        value: Raw ``Link`` header value.

    Returns:
        Dict mapping relation to URI (e.g., {"next": "url", "last": "url"}).
    """
    if not value:
        return {}

    links: dict[str, str] = {}
    # Link header format: <url>; rel="next", <url>; rel="last"
    for entry in value.split(","):
        rel_match = _LINK_REL_PATTERN.search(entry)
        uri_match = _LINK_URI_PATTERN.search(entry)
        if rel_match is None or uri_match is None:
            logger.debug("Skipping malformed Link entry: %r", entry.strip())
            continue
        links[rel_match.group(1).lower()] = uri_match.group(1)

    return links


class ApiInfoMiddleware(Middleware):
    """Attaches :class:`ApiInfo` to every response."""

    async def before(self, envelope: Envelope[Any]) -> None:
        if not isinstance(envelope.response, ApiResponse):
            envelope.response = ApiResponse.from_response(envelope.response)

    async def after(self, envelope: Envelope[Any]) -> None:
        response = envelope.response
        if not isinstance(response, ApiResponse):
            response = ApiResponse.from_response(response)
            envelope.response = response
        response.api_info = ApiInfo.from_headers(response.headers, datetime.now(UTC))
