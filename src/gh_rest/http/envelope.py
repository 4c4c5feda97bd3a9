"""Request/response carriers passed through the middleware pipeline."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from gh_rest.http.api_info import ApiInfo

T = TypeVar("T")


class HttpMethod(StrEnum):
    """HTTP verbs used by the REST API."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass
class Request:
    """Outgoing request as seen by middleware."""

    method: str
    base_address: str
    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    params: dict[str, str] | None = None
    content_type: str | None = None
    timeout: float | None = None

    def get_header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return find_header(self.headers, name)


@dataclass
class Response:
    """Response captured from the wire."""

    status_code: int = 0
    body: str | None = None
    body_as_object: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    response_uri: str | None = None
    content_type: str | None = None

    @property
    def is_success(self) -> bool:
        """Check if response was successful (2xx status code)."""
        return 200 <= self.status_code < 300

    def get_header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        return find_header(self.headers, name)


@dataclass
class ApiResponse(Response):
    """Response variant that carries parsed API metadata."""

    api_info: "ApiInfo | None" = None

    @classmethod
    def from_response(cls, response: Response) -> "ApiResponse":
        return cls(
            status_code=response.status_code,
            body=response.body,
            body_as_object=response.body_as_object,
            headers=response.headers,
            response_uri=response.response_uri,
            content_type=response.content_type,
        )


@dataclass
class Envelope(Generic[T]):
    """Per-call context shared by every stage of the pipeline."""

    request: Request
    response: Response = field(default_factory=Response)
    response_type: Any = Any

    @property
    def body(self) -> T:
        """The decoded response body."""
        return self.response.body_as_object  # type: ignore[no-any-return]


def find_header(headers: dict[str, str], name: str) -> str | None:
    name = name.lower()
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def set_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header, replacing any existing key that differs only in case."""
    lowered = name.lower()
    for key in [key for key in headers if key.lower() == lowered]:
        del headers[key]
    headers[name] = value
