"""Connection: owns the middleware stack and issues REST calls.

Every request method goes through :meth:`Connection.send`, which builds a
fresh :class:`Envelope` and runs it through the application built once per
connection.
"""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import httpx

from gh_rest import __version__
from gh_rest.errors import ApiError, FrozenPipelineError
from gh_rest.http.api_info import ApiInfo, ApiInfoMiddleware
from gh_rest.http.auth import (
    ANONYMOUS,
    AuthenticationMiddleware,
    AuthenticationType,
    Authenticator,
    CredentialStore,
    Credentials,
    EnvironmentCredentialStore,
    InMemoryCredentialStore,
)
from gh_rest.http.builder import Application, Builder
from gh_rest.http.caching import CachingTransport, InMemoryResponseCache, ResponseCache
from gh_rest.http.envelope import ApiResponse, Envelope, HttpMethod, Request, Response
from gh_rest.http.serializer import JsonMiddleware, JsonSerializer
from gh_rest.http.transport import HttpxTransport, Transport

if TYPE_CHECKING:
    from gh_rest.config import ClientConfig

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com/"

MiddlewareStack = Callable[[Builder], Application]


class Connection:
    """A connection for making HTTP requests against the GitHub API.

    The middleware application is built lazily on first use and is fixed for
    the lifetime of the connection. Until then ``builder``,
    ``middleware_stack`` and ``response_cache`` may be replaced.

    Calls on one connection are independent of each other and may run
    concurrently.
    """

    def __init__(
        self,
        base_address: str = GITHUB_API_URL,
        credential_store: CredentialStore | None = None,
        transport: Transport | None = None,
        *,
        serializer: JsonSerializer | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Initialize the connection.

        Args:
            base_address: Absolute API root, e.g. https://api.github.com/ or a
                GitHub Enterprise ``/api/v3/`` URL.
            credential_store: Provides credentials per request. Anonymous if None.
            transport: Terminal adapter. Defaults to HttpxTransport.
            serializer: JSON serializer used by the default stack.
            user_agent: User-Agent header value.

        Raises:
            ValueError: If base_address is empty or not absolute.
        """
        if not base_address:
            raise ValueError("base_address must not be empty")
        if not httpx.URL(base_address).is_absolute_url:
            raise ValueError(f"The base address '{base_address}' must be an absolute URI")

        self._base_address = base_address if base_address.endswith("/") else base_address + "/"
        self._authenticator = Authenticator(
            credential_store or InMemoryCredentialStore(ANONYMOUS)
        )
        self._transport = transport or HttpxTransport()
        self.serializer = serializer or JsonSerializer()
        self.user_agent = user_agent or f"gh-rest/{__version__}"

        self._builder: Builder | None = None
        self._middleware_stack: MiddlewareStack | None = None
        self._app: Application | None = None
        self._last_api_info: ApiInfo | None = None

    @classmethod
    def from_config(cls, config: "ClientConfig") -> "Connection":
        """Create a connection from a loaded configuration."""
        store: CredentialStore
        if config.auth.kind == "anonymous":
            store = InMemoryCredentialStore(ANONYMOUS)
        else:
            kind = AuthenticationType.BEARER if config.auth.kind == "bearer" else AuthenticationType.OAUTH
            store = EnvironmentCredentialStore(
                token_env=config.auth.token_env,
                authentication_type=kind,
                use_gh_cli=config.auth.use_gh_cli,
            )

        connection = cls(
            config.base_url,
            store,
            HttpxTransport(timeout=config.timeout_seconds),
            user_agent=config.user_agent,
        )
        if config.cache.enabled:
            connection.response_cache = InMemoryResponseCache(config.cache.max_entries)
        return connection

    @property
    def base_address(self) -> str:
        return self._base_address

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def credential_store(self) -> CredentialStore:
        return self._authenticator.credential_store

    @property
    def credentials(self) -> Credentials:
        """Credentials currently held by an in-memory store.

        Only meaningful for :class:`InMemoryCredentialStore`; other stores are
        consulted asynchronously per request.
        """
        store = self._authenticator.credential_store
        if isinstance(store, InMemoryCredentialStore):
            return store.credentials
        return ANONYMOUS

    @credentials.setter
    def credentials(self, value: Credentials) -> None:
        if value is None:
            raise ValueError("credentials must not be None")
        self._authenticator.credential_store = InMemoryCredentialStore(value)

    @property
    def builder(self) -> Builder:
        if self._builder is None:
            self._builder = Builder()
        return self._builder

    @builder.setter
    def builder(self, value: Builder) -> None:
        self._ensure_not_built()
        self._builder = value

    @property
    def middleware_stack(self) -> MiddlewareStack:
        return self._middleware_stack or self.default_middleware_stack

    @middleware_stack.setter
    def middleware_stack(self, value: MiddlewareStack) -> None:
        self._ensure_not_built()
        self._middleware_stack = value

    @property
    def response_cache(self) -> ResponseCache | None:
        if isinstance(self._transport, CachingTransport):
            return self._transport.cache
        return None

    @response_cache.setter
    def response_cache(self, cache: ResponseCache) -> None:
        """Wrap the transport in a CachingTransport using ``cache``."""
        if cache is None:
            raise ValueError("cache must not be None")
        self._ensure_not_built()
        self._transport = CachingTransport(self._transport, cache)

    @property
    def app(self) -> Application:
        """The middleware application, built on first access."""
        if self._app is None:
            self._app = self.middleware_stack(self.builder)
        return self._app

    @property
    def last_api_info(self) -> ApiInfo | None:
        """Copy of the API info of the latest response, None before any call."""
        return self._last_api_info.clone() if self._last_api_info else None

    def default_middleware_stack(self, builder: Builder) -> Application:
        """Authentication, JSON and API info stages around the transport."""
        authenticator = self._authenticator
        serializer = self.serializer
        builder.use(lambda app: AuthenticationMiddleware(app, authenticator))
        builder.use(lambda app: JsonMiddleware(app, serializer))
        builder.use(ApiInfoMiddleware)
        return builder.run(self._transport)

    def set_request_timeout(self, timeout: float) -> None:
        """Set the timeout, in seconds, applied to each physical call."""
        self._transport.set_request_timeout(timeout)

    def _ensure_not_built(self) -> None:
        if self._app is not None:
            raise FrozenPipelineError(
                "The connection has already been used; its middleware stack cannot be changed"
            )

    async def get(
        self,
        endpoint: str,
        response_type: Any = Any,
        *,
        params: dict[str, str] | None = None,
        accepts: str | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Perform a GET request.

        Args:
            endpoint: Endpoint relative to the base address, or absolute URL.
            response_type: Type to decode the body into. ``str`` keeps raw text.
            params: Query string parameters.
            accepts: Accept header override.
            timeout: Per-call timeout override in seconds.

        Returns:
            The response, with ``body_as_object`` and ``api_info`` populated.
        """
        return await self.send(
            HttpMethod.GET, endpoint, response_type, params=params, accepts=accepts, timeout=timeout
        )

    async def post(
        self,
        endpoint: str,
        body: Any = None,
        response_type: Any = Any,
        *,
        params: dict[str, str] | None = None,
        accepts: str | None = None,
        content_type: str | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Perform a POST request, serializing ``body`` as JSON."""
        return await self.send(
            HttpMethod.POST,
            endpoint,
            response_type,
            body=body,
            params=params,
            accepts=accepts,
            content_type=content_type,
            timeout=timeout,
        )

    async def put(
        self,
        endpoint: str,
        body: Any = None,
        response_type: Any = Any,
        *,
        accepts: str | None = None,
        content_type: str | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Perform a PUT request."""
        return await self.send(
            HttpMethod.PUT,
            endpoint,
            response_type,
            body=body,
            accepts=accepts,
            content_type=content_type,
            timeout=timeout,
        )

    async def patch(
        self,
        endpoint: str,
        body: Any,
        response_type: Any = Any,
        *,
        accepts: str | None = None,
        content_type: str | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Perform a PATCH request.

        Raises:
            ValueError: If body is None.
        """
        if body is None:
            raise ValueError("body must not be None")
        return await self.send(
            HttpMethod.PATCH,
            endpoint,
            response_type,
            body=body,
            accepts=accepts,
            content_type=content_type,
            timeout=timeout,
        )

    async def delete(
        self,
        endpoint: str,
        body: Any = None,
        response_type: Any = Any,
        *,
        accepts: str | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Perform a DELETE request, optionally with a body."""
        return await self.send(
            HttpMethod.DELETE,
            endpoint,
            response_type,
            body=body,
            accepts=accepts,
            timeout=timeout,
        )

    async def send(
        self,
        method: str,
        endpoint: str,
        response_type: Any = Any,
        *,
        body: Any = None,
        params: dict[str, str] | None = None,
        accepts: str | None = None,
        content_type: str | None = None,
        timeout: float | None = None,
    ) -> Response:
        """Run a request through the middleware application.

        Raises:
            ValueError: If endpoint is empty.
            ApiError: For non-2xx responses.
            TransportError: For network failures.
            SerializationError: If the body cannot be (de)serialized.
        """
        if not endpoint:
            raise ValueError("endpoint must not be empty")

        request = Request(
            method=str(method),
            base_address=self._base_address,
            endpoint=str(endpoint),
            headers={"User-Agent": self.user_agent},
            body=body,
            params=params,
            content_type=content_type,
            timeout=timeout,
        )
        if accepts:
            request.headers["Accept"] = accepts

        envelope: Envelope[Any] = Envelope(request=request, response_type=response_type)
        try:
            await self.app.invoke(envelope)
        except ApiError as e:
            # status 0 means nothing came back from the server
            if e.status_code:
                self._last_api_info = e.api_info
            raise

        response = envelope.response
        if isinstance(response, ApiResponse) and response.api_info is not None:
            self._last_api_info = response.api_info
        return response

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._transport.close()

    async def __aenter__(self) -> "Connection":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
