"""Request pipeline, connection and pagination for the GitHub REST API."""

from gh_rest.http.api_info import ApiInfo, ApiInfoMiddleware, parse_link_header
from gh_rest.http.auth import (
    AuthenticationMiddleware,
    AuthenticationType,
    Authenticator,
    BasicCredentials,
    BearerCredentials,
    Credentials,
    CredentialStore,
    EnvironmentCredentialStore,
    InMemoryCredentialStore,
    TokenCredentials,
    select_authenticator,
)
from gh_rest.http.builder import Application, Builder, Middleware
from gh_rest.http.caching import (
    CachedResponse,
    CacheResult,
    CachingTransport,
    InMemoryResponseCache,
    ResponseCache,
)
from gh_rest.http.connection import GITHUB_API_URL, Connection
from gh_rest.http.envelope import ApiResponse, Envelope, HttpMethod, Request, Response
from gh_rest.http.pagination import (
    ApiOptions,
    Page,
    get_all_pages,
    iterate_items,
    iterate_pages,
)
from gh_rest.http.serializer import GitHubModel, JsonMiddleware, JsonSerializer
from gh_rest.http.transport import HttpxTransport, Transport

__all__ = [
    # Envelope
    "ApiResponse",
    "Envelope",
    "HttpMethod",
    "Request",
    "Response",
    # Pipeline
    "Application",
    "Builder",
    "Middleware",
    # Auth
    "AuthenticationMiddleware",
    "AuthenticationType",
    "Authenticator",
    "BasicCredentials",
    "BearerCredentials",
    "CredentialStore",
    "Credentials",
    "EnvironmentCredentialStore",
    "InMemoryCredentialStore",
    "TokenCredentials",
    "select_authenticator",
    # Serialization
    "GitHubModel",
    "JsonMiddleware",
    "JsonSerializer",
    # API info
    "ApiInfo",
    "ApiInfoMiddleware",
    "parse_link_header",
    # Transport
    "HttpxTransport",
    "Transport",
    # Connection
    "GITHUB_API_URL",
    "Connection",
    # Pagination
    "ApiOptions",
    "Page",
    "get_all_pages",
    "iterate_items",
    "iterate_pages",
    # Caching
    "CacheResult",
    "CachedResponse",
    "CachingTransport",
    "InMemoryResponseCache",
    "ResponseCache",
]
