"""Terminal pipeline stage performing the network exchange.

A :class:`Transport` is the innermost application of a middleware stack. Its
``send`` method is the raw exchange (any status code is returned); ``invoke``
copies the result into the envelope and raises for non-2xx statuses.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from gh_rest.errors import TransportError, raise_for_status
from gh_rest.http.envelope import Envelope, Request, Response

logger = logging.getLogger(__name__)


def resolve_url(request: Request) -> str:
    """Resolve the request endpoint against its base address.

    Relative endpoints always stay below the base path, with or without a
    leading slash. Absolute URLs (pagination links) are returned unchanged.
    """
    endpoint = str(request.endpoint)
    if not request.base_address:
        return endpoint
    if httpx.URL(endpoint).is_relative_url and endpoint.startswith("/"):
        endpoint = endpoint[1:]
    return str(httpx.URL(str(request.base_address)).join(endpoint))


class Transport(ABC):
    """Base class for terminal adapters."""

    @abstractmethod
    async def send(self, request: Request) -> Response:
        """Perform the exchange and return the response, whatever its status."""

    async def invoke(self, envelope: Envelope[Any]) -> "Transport":
        response = await self.send(envelope.request)

        target = envelope.response
        target.status_code = response.status_code
        target.body = response.body
        target.headers = dict(response.headers)
        target.response_uri = response.response_uri
        target.content_type = response.content_type

        raise_for_status(target)
        return self

    @abstractmethod
    def set_request_timeout(self, timeout: float) -> None:
        """Set the per-call timeout in seconds."""

    async def close(self) -> None:
        """Release any network resources."""


class HttpxTransport(Transport):
    """Transport backed by ``httpx.AsyncClient``.

    Features:
    - Lazily created client (or an injected one, which is not closed by us)
    - Configurable timeout per physical call, overridable per request
    - Redirects followed
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Request timeout in seconds.
            client: Optional preconfigured client.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def timeout(self) -> float:
        return self._timeout

    def set_request_timeout(self, timeout: float) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self._timeout = timeout

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def send(self, request: Request) -> Response:
        """Send a request over the wire.

        Raises:
            TransportError: On timeouts and network failures.
        """
        client = self._ensure_client()
        url = resolve_url(request)

        headers = dict(request.headers)
        content = None
        if isinstance(request.body, str):
            content = request.body.encode("utf-8")
            if request.content_type:
                headers["Content-Type"] = request.content_type

        timeout = request.timeout if request.timeout is not None else self._timeout

        logger.debug("%s %s", request.method, url)
        try:
            wire_response = await client.request(
                request.method,
                url,
                headers=headers,
                content=content,
                params=request.params,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("Timeout for %s %s", request.method, url)
            raise TransportError(0, message=f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            logger.warning("Network error for %s %s: %s", request.method, url, e)
            raise TransportError(0, message=f"Network error: {e}") from e

        logger.debug("%s %s -> %d", request.method, url, wire_response.status_code)
        return Response(
            status_code=wire_response.status_code,
            body=wire_response.text,
            headers=_first_values(wire_response.headers),
            response_uri=str(wire_response.url),
            content_type=wire_response.headers.get("content-type"),
        )

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpxTransport":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def _first_values(headers: httpx.Headers) -> dict[str, str]:
    """Flatten headers keeping original case and the first value of repeats."""
    flattened: dict[str, str] = {}
    seen: set[str] = set()
    for raw_key, raw_value in headers.raw:
        key = raw_key.decode(headers.encoding)
        if key.lower() in seen:
            continue
        seen.add(key.lower())
        flattened[key] = raw_value.decode(headers.encoding)
    return flattened
