"""Link-header driven pagination.

Pages are fetched strictly one at a time by following the ``next`` relation
of each response, so ordering is preserved and rate limits are respected.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator, Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from gh_rest.http.api_info import ApiInfo
from gh_rest.http.envelope import ApiResponse, Response

if TYPE_CHECKING:
    from gh_rest.http.connection import Connection

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApiOptions(BaseModel):
    """Paging options for list endpoints."""

    model_config = ConfigDict(frozen=True)

    start_page: int | None = Field(default=None, ge=1)
    page_size: int | None = Field(default=None, ge=1, le=100)
    page_count: int | None = Field(default=None, ge=1)

    def to_params(self) -> dict[str, str]:
        """Query parameters selecting the first page."""
        params: dict[str, str] = {}
        if self.start_page is not None:
            params["page"] = str(self.start_page)
        if self.page_size is not None:
            params["per_page"] = str(self.page_size)
        return params


class Page(Generic[T]):
    """One fetched slice of a paginated collection."""

    def __init__(
        self,
        items: Sequence[T],
        connection: "Connection",
        item_type: Any = Any,
        next_page_url: str | None = None,
        api_info: ApiInfo | None = None,
        accepts: str | None = None,
    ) -> None:
        self.items: tuple[T, ...] = tuple(items)
        self.connection = connection
        self.item_type = item_type
        self.next_page_url = next_page_url
        self.api_info = api_info
        self.accepts = accepts

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __repr__(self) -> str:
        return f"Page(items={len(self.items)}, next_page_url={self.next_page_url!r})"

    @classmethod
    async def fetch(
        cls,
        connection: "Connection",
        endpoint: str,
        item_type: Any = Any,
        params: dict[str, str] | None = None,
        accepts: str | None = None,
    ) -> "Page[T]":
        """Fetch a single page from ``endpoint``.

        Args:
            connection: Connection used for this and every following page.
            endpoint: Relative endpoint or absolute page URL.
            item_type: Type of each item in the list body.
            params: Query parameters for this page.
            accepts: Accept header override.

        Returns:
            The fetched page.
        """
        response = await connection.get(
            endpoint, list[item_type], params=params, accepts=accepts  # type: ignore[valid-type]
        )
        return cls.from_response(response, connection, item_type, accepts)

    @classmethod
    def from_response(
        cls,
        response: Response,
        connection: "Connection",
        item_type: Any = Any,
        accepts: str | None = None,
    ) -> "Page[T]":
        api_info = response.api_info if isinstance(response, ApiResponse) else None
        items = response.body_as_object or []
        return cls(
            items,
            connection,
            item_type,
            next_page_url=api_info.next_page_url if api_info else None,
            api_info=api_info,
            accepts=accepts,
        )

    async def get_next_page(self) -> "Page[T] | None":
        """Fetch the page after this one.

        Returns:
            The next page, or None when this is the last page.
        """
        if self.next_page_url is None:
            return None
        logger.debug("Following pagination to %s", self.next_page_url)
        return await Page.fetch(
            self.connection, self.next_page_url, self.item_type, accepts=self.accepts
        )


async def iterate_pages(
    get_first_page: Callable[[], Awaitable[Page[T]]],
    page_count: int | None = None,
) -> AsyncIterator[Page[T]]:
    """Lazily yield pages, starting with the first.

    Args:
        get_first_page: Fetches the first page.
        page_count: Stop after this many pages. Unlimited if None.

    Yields:
        Each page in order.
    """
    if page_count is not None and page_count < 1:
        raise ValueError("page_count must be at least 1")

    page: Page[T] | None = await get_first_page()
    fetched = 0
    while page is not None:
        yield page
        fetched += 1
        if page_count is not None and fetched >= page_count:
            return
        page = await page.get_next_page()


async def iterate_items(
    get_first_page: Callable[[], Awaitable[Page[T]]],
    page_count: int | None = None,
) -> AsyncIterator[T]:
    """Lazily yield items across pages."""
    async for page in iterate_pages(get_first_page, page_count):
        for item in page.items:
            yield item


async def get_all_pages(
    get_first_page: Callable[[], Awaitable[Page[T]]],
    page_count: int | None = None,
) -> tuple[T, ...]:
    """Fetch every page and concatenate the items.

    Args:
        get_first_page: Fetches the first page; called exactly once.
        page_count: Stop after this many pages. Unlimited if None.

    Returns:
        Immutable, order-preserving tuple of all items.
    """
    items: list[T] = []
    pages = 0
    async for page in iterate_pages(get_first_page, page_count):
        items.extend(page.items)
        pages += 1

    logger.debug("Fetched %d item(s) across %d page(s)", len(items), pages)
    return tuple(items)
