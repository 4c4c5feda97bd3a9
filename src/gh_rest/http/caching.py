"""ETag-aware response caching.

:class:`CachingTransport` wraps another transport and revalidates cached GET
responses with ``If-None-Match``. Caching is best effort: cache failures are
reported as failed :class:`CacheResult` values and treated as a miss, so a
broken cache never breaks a request.
"""

import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from gh_rest.http.api_info import ApiInfo
from gh_rest.http.envelope import HttpMethod, Request, Response, find_header
from gh_rest.http.transport import Transport, resolve_url

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOT_MODIFIED = 304


class CachedResponse(BaseModel):
    """Snapshot of a successful GET response."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    body: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    api_info: ApiInfo = Field(default_factory=ApiInfo)
    content_type: str | None = None
    response_uri: str | None = None

    @classmethod
    def from_response(cls, response: Response) -> "CachedResponse":
        return cls(
            status_code=response.status_code,
            body=response.body,
            headers=dict(response.headers),
            api_info=ApiInfo.from_headers(response.headers),
            content_type=response.content_type,
            response_uri=response.response_uri,
        )

    def to_response(self) -> Response:
        return Response(
            status_code=self.status_code,
            body=self.body,
            headers=dict(self.headers),
            response_uri=self.response_uri,
            content_type=self.content_type,
        )


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """Outcome of a cache operation."""

    ok: bool
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "CacheResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: Exception) -> "CacheResult[T]":
        return cls(ok=False, error=error)


def cache_key(request: Request) -> str:
    """Identity of a request for caching purposes.

    Combines the method, resolved URL (with query parameters), and the
    ``Accept`` and ``Authorization`` headers so different media types or
    users never share an entry.
    """
    url = resolve_url(request)
    if request.params:
        query = "&".join(f"{key}={value}" for key, value in sorted(request.params.items()))
        url = f"{url}{'&' if '?' in url else '?'}{query}"
    parts = [
        str(request.method).upper(),
        url,
        find_header(request.headers, "Accept") or "",
        find_header(request.headers, "Authorization") or "",
    ]
    return hashlib.sha256("\n".join(parts).encode("utf-8")).hexdigest()


class ResponseCache(ABC):
    """Storage for cached responses.

    Implementations provide ``_read`` and ``_write``, which may raise; the
    public ``lookup`` and ``store`` methods never do.
    """

    @abstractmethod
    async def _read(self, key: str) -> CachedResponse | None: ...

    @abstractmethod
    async def _write(self, key: str, entry: CachedResponse) -> None: ...

    async def lookup(self, request: Request) -> CacheResult[CachedResponse]:
        try:
            return CacheResult.success(await self._read(cache_key(request)))
        except Exception as e:
            logger.warning("Response cache lookup failed: %s", e)
            return CacheResult.failure(e)

    async def store(self, request: Request, entry: CachedResponse) -> CacheResult[None]:
        try:
            await self._write(cache_key(request), entry)
            return CacheResult.success()
        except Exception as e:
            logger.warning("Response cache store failed: %s", e)
            return CacheResult.failure(e)


class InMemoryResponseCache(ResponseCache):
    """Least-recently-used in-process cache, safe for concurrent tasks."""

    def __init__(self, max_entries: int = 1000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, CachedResponse] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def _read(self, key: str) -> CachedResponse | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    async def _write(self, key: str, entry: CachedResponse) -> None:
        async with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)


class CachingTransport(Transport):
    """Transport decorator serving conditional GETs from a response cache."""

    def __init__(self, inner: Transport, cache: ResponseCache) -> None:
        if inner is None:
            raise ValueError("inner must not be None")
        if cache is None:
            raise ValueError("cache must not be None")
        self.inner = inner
        self.cache = cache

    def set_request_timeout(self, timeout: float) -> None:
        self.inner.set_request_timeout(timeout)

    async def close(self) -> None:
        await self.inner.close()

    async def send(self, request: Request) -> Response:
        if str(request.method).upper() != HttpMethod.GET:
            return await self.inner.send(request)

        lookup = await self.cache.lookup(request)
        cached = lookup.value if lookup.ok else None

        if cached is not None and cached.api_info.etag:
            conditional = _with_header(request, "If-None-Match", cached.api_info.etag)
            response = await self.inner.send(conditional)
            if response.status_code == NOT_MODIFIED:
                logger.debug("Cache hit for %s", resolve_url(request))
                return cached.to_response()
        else:
            response = await self.inner.send(request)

        if response.is_success:
            await self.cache.store(request, CachedResponse.from_response(response))
        return response


def _with_header(request: Request, name: str, value: str) -> Request:
    return replace(request, headers={**request.headers, name: value})
