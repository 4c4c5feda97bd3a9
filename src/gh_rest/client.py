"""GitHub REST API client.

Thin layer over :class:`~gh_rest.http.connection.Connection` returning decoded
bodies, with helpers that exhaust paginated list endpoints.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, TypeVar, cast

from gh_rest.http.api_info import ApiInfo
from gh_rest.http.connection import Connection
from gh_rest.http.pagination import ApiOptions, Page, get_all_pages, iterate_items

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RestClient:
    """GitHub REST API client.

    Wraps Connection to provide:
    - Decoded response bodies instead of response objects
    - Automatic pagination following Link headers
    - Memory-efficient async iteration
    """

    def __init__(self, connection: Connection | None = None) -> None:
        """Initialize REST API client.

        Args:
            connection: Connection for HTTP requests. Anonymous api.github.com if None.
        """
        self._connection = connection or Connection()

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def last_api_info(self) -> ApiInfo | None:
        return self._connection.last_api_info

    async def get(
        self,
        endpoint: str,
        response_type: type[T] | Any = Any,
        params: dict[str, str] | None = None,
        accepts: str | None = None,
    ) -> T:
        """Get a single resource.

        Args:
            endpoint: API path (e.g., "/user" or "repos/owner/repo").
            response_type: Type to decode the body into.
            params: Query parameters.
            accepts: Accept header override.

        Returns:
            Decoded body.
        """
        response = await self._connection.get(
            endpoint, response_type, params=params, accepts=accepts
        )
        return cast(T, response.body_as_object)

    def _first_page(
        self,
        endpoint: str,
        item_type: Any,
        params: dict[str, str] | None,
        options: ApiOptions | None,
        accepts: str | None,
    ) -> Callable[[], Awaitable[Page[Any]]]:
        merged = dict(params or {})
        if options is not None:
            merged.update(options.to_params())

        async def get_first_page() -> Page[Any]:
            return await Page.fetch(
                self._connection, endpoint, item_type, params=merged or None, accepts=accepts
            )

        return get_first_page

    async def get_all(
        self,
        endpoint: str,
        item_type: type[T] | Any = Any,
        params: dict[str, str] | None = None,
        options: ApiOptions | None = None,
        accepts: str | None = None,
    ) -> tuple[T, ...]:
        """Get every item of a paginated list endpoint.

        Args:
            endpoint: API path of the list.
            item_type: Type of each list item.
            params: Query parameters for the first page.
            options: Start page, page size and page count limits.
            accepts: Accept header override.

        Returns:
            All items, in API order.
        """
        logger.info("Fetching all pages of %s", endpoint)
        page_count = options.page_count if options else None
        return await get_all_pages(
            self._first_page(endpoint, item_type, params, options, accepts), page_count
        )

    async def iter_all(
        self,
        endpoint: str,
        item_type: type[T] | Any = Any,
        params: dict[str, str] | None = None,
        options: ApiOptions | None = None,
        accepts: str | None = None,
    ) -> AsyncIterator[T]:
        """Iterate items of a paginated list endpoint, fetching pages lazily."""
        page_count = options.page_count if options else None
        async for item in iterate_items(
            self._first_page(endpoint, item_type, params, options, accepts), page_count
        ):
            yield item

    async def create(
        self, endpoint: str, body: Any, response_type: type[T] | Any = Any
    ) -> T:
        """POST ``body`` and return the created resource."""
        response = await self._connection.post(endpoint, body, response_type)
        return cast(T, response.body_as_object)

    async def update(
        self, endpoint: str, body: Any, response_type: type[T] | Any = Any
    ) -> T:
        """PATCH ``body`` and return the updated resource."""
        response = await self._connection.patch(endpoint, body, response_type)
        return cast(T, response.body_as_object)

    async def replace(
        self, endpoint: str, body: Any = None, response_type: type[T] | Any = Any
    ) -> T:
        """PUT ``body`` and return the response body, if any."""
        response = await self._connection.put(endpoint, body, response_type)
        return cast(T, response.body_as_object)

    async def delete(self, endpoint: str, body: Any = None) -> int:
        """DELETE a resource.

        Returns:
            The response status code.
        """
        response = await self._connection.delete(endpoint, body)
        return response.status_code

    async def get_rate_limit(self) -> dict[str, Any]:
        """Get current rate limit status.

        Returns:
            Rate limit data dict with resources breakdown.
        """
        return await self.get("rate_limit", dict[str, Any])

    async def close(self) -> None:
        await self._connection.close()

    async def __aenter__(self) -> "RestClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
