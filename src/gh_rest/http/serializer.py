"""JSON encoding of request bodies and decoding of response bodies."""

import logging
from typing import Any, TypeVar

import pydantic_core
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_snake

from gh_rest.errors import SerializationError
from gh_rest.http.builder import Application, Middleware
from gh_rest.http.envelope import Envelope, HttpMethod, find_header, set_header

logger = logging.getLogger(__name__)

T = TypeVar("T")

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
DEFAULT_ACCEPT = "application/vnd.github+json"


class GitHubModel(BaseModel):
    """Base for models exchanged with the API.

    Wire names are the snake_case form of the field names, so a field declared
    as ``htmlUrl`` reads and writes ``html_url``. Unknown fields are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_snake,
        populate_by_name=True,
        extra="ignore",
    )


class JsonSerializer:
    """Encodes objects to wire JSON and decodes wire JSON into typed objects."""

    def __init__(self) -> None:
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    def serialize(self, item: Any) -> str:
        """Serialize an object to compact JSON.

        Raises:
            SerializationError: If the object cannot be represented as JSON.
        """
        try:
            return pydantic_core.to_json(item, by_alias=True, exclude_none=True).decode("utf-8")
        except pydantic_core.PydanticSerializationError as e:
            raise SerializationError(f"Could not serialize {type(item).__name__}: {e}") from e

    def deserialize(self, text: str, type_: type[T] | Any) -> T:
        """Parse JSON text and validate it against ``type_``.

        Raises:
            SerializationError: On malformed JSON or a shape mismatch.
        """
        try:
            return self._adapter(type_).validate_json(text)  # type: ignore[no-any-return]
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            )
            raise SerializationError(f"Could not deserialize response body: {details}") from e

    def _adapter(self, type_: Any) -> TypeAdapter[Any]:
        try:
            adapter = self._adapters.get(type_)
        except TypeError:
            return TypeAdapter(type_)
        if adapter is None:
            adapter = TypeAdapter(type_)
            self._adapters[type_] = adapter
        return adapter


class JsonMiddleware(Middleware):
    """Serializes request bodies and deserializes response bodies."""

    def __init__(self, app: Application, serializer: JsonSerializer | None = None) -> None:
        super().__init__(app)
        self.serializer = serializer or JsonSerializer()

    async def before(self, envelope: Envelope[Any]) -> None:
        request = envelope.request
        if find_header(request.headers, "Accept") is None:
            set_header(request.headers, "Accept", DEFAULT_ACCEPT)

        if request.method == HttpMethod.GET or request.body is None:
            return
        if isinstance(request.body, str):
            return

        request.body = self.serializer.serialize(request.body)
        if request.content_type is None:
            request.content_type = JSON_CONTENT_TYPE

    async def after(self, envelope: Envelope[Any]) -> None:
        response = envelope.response
        response_type = envelope.response_type

        if response_type is str:
            response.body_as_object = response.body
            return
        if not response.body:
            response.body_as_object = None
            return
        # Untyped calls only decode bodies that declare themselves as JSON
        if response_type is Any and not _is_json(response.content_type):
            response.body_as_object = response.body
            return

        response.body_as_object = self.serializer.deserialize(response.body, response_type)


def _is_json(content_type: str | None) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")
