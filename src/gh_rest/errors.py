"""Exception hierarchy for GitHub API calls.

Responses with a non-2xx status are mapped to a specific exception class by
:func:`raise_for_status` so callers can special-case flows such as
"must log in" (:class:`AuthorizationError`) without parsing messages.
"""

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gh_rest.http.api_info import ApiInfo
    from gh_rest.http.envelope import Response

logger = logging.getLogger(__name__)

BODY_SNIPPET_LENGTH = 500


class GitHubError(Exception):
    """Base exception for all errors raised by gh-rest."""


class FrozenPipelineError(GitHubError):
    """Raised when a middleware stack is modified after it has been built."""


class AuthenticatorMismatchError(GitHubError):
    """Raised when credentials do not fit the authenticator they were given to."""


class SerializationError(GitHubError):
    """Raised when a request or response body cannot be (de)serialized."""


class ApiError(GitHubError):
    """Raised when the API returns an error response."""

    default_message = "An error occurred with this API request"

    def __init__(
        self,
        status_code: int,
        body: str | None = None,
        headers: dict[str, str] | None = None,
        message: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers or {})
        self.message = message or _message_from_body(body) or self.default_message
        super().__init__(f"{self.message} (HTTP {status_code})")

    @classmethod
    def from_response(cls, response: "Response") -> "ApiError":
        return cls(response.status_code, response.body, response.headers)

    @property
    def api_info(self) -> "ApiInfo":
        """API metadata parsed from the error response headers."""
        from gh_rest.http.api_info import ApiInfo

        return ApiInfo.from_headers(self.headers)


class TransportError(ApiError):
    """Raised for network failures and unexpected non-2xx statuses.

    ``status_code`` is 0 when no response was received at all.
    """

    default_message = "The request could not be completed"


class AuthorizationError(ApiError):
    """Raised for 401 Unauthorized responses."""

    default_message = "You must be authenticated to perform this request"


class TwoFactorRequiredError(AuthorizationError):
    """Raised for 401 responses that require a two-factor code."""

    default_message = "Two-factor authentication code is required"

    def __init__(
        self,
        status_code: int,
        body: str | None = None,
        headers: dict[str, str] | None = None,
        message: str | None = None,
        two_factor_type: str = "unknown",
    ) -> None:
        self.two_factor_type = two_factor_type
        super().__init__(status_code, body, headers, message)


class ForbiddenError(AuthorizationError):
    """Raised for 403 Forbidden responses."""

    default_message = "You do not have permission to perform this request"


class RateLimitExceededError(ForbiddenError):
    """Raised for 403 responses caused by an exhausted rate limit."""

    default_message = "API rate limit exceeded"

    @property
    def limit(self) -> int:
        return self.api_info.rate_limit

    @property
    def remaining(self) -> int:
        return self.api_info.rate_limit_remaining

    @property
    def reset(self) -> Any:
        return self.api_info.rate_limit_reset


class SecondaryRateLimitExceededError(ForbiddenError):
    """Raised for 403 responses caused by a secondary rate limit."""

    default_message = "A secondary rate limit has been exceeded"


class LoginAttemptsExceededError(ForbiddenError):
    """Raised when too many failed logins were made with the credentials."""

    default_message = "Maximum number of login attempts exceeded"


class AbuseError(ForbiddenError):
    """Raised when the abuse detection mechanism blocks a request."""

    default_message = "Request blocked by the abuse detection mechanism"

    @property
    def retry_after_seconds(self) -> int | None:
        """Value of the Retry-After header, if present and valid."""
        value = _header(self.headers, "Retry-After")
        if value is None:
            return None
        try:
            seconds = int(value.strip())
        except ValueError:
            return None
        return seconds if seconds >= 0 else None


class NotFoundError(ApiError):
    """Raised for 404 Not Found responses."""

    default_message = "The requested resource was not found"


class LegalRestrictionError(ApiError):
    """Raised for 451 Unavailable For Legal Reasons responses."""

    default_message = "Resource unavailable for legal reasons"


class ApiValidationError(ApiError):
    """Raised for 422 Unprocessable Entity responses."""

    default_message = "Validation failed"

    @property
    def errors(self) -> list[Any]:
        """Field-level errors reported by the API, if any."""
        payload = _load_json(self.body)
        if isinstance(payload, dict) and isinstance(payload.get("errors"), list):
            return payload["errors"]
        return []


def _load_json(body: str | None) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def _message_from_body(body: str | None) -> str | None:
    payload = _load_json(body)
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return str(payload["message"])
    if body:
        return body[:BODY_SNIPPET_LENGTH]
    return None


def _header(headers: dict[str, str], name: str) -> str | None:
    name = name.lower()
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def parse_two_factor_type(headers: dict[str, str]) -> str | None:
    """Parse the ``X-GitHub-OTP`` header.

    Returns:
        ``"sms"``, ``"app"`` or ``"unknown"`` when a code is required,
        None otherwise.
    """
    value = _header(headers, "X-GitHub-OTP")
    if not value:
        return None
    parts = [part.strip() for part in value.split(";") if part.strip()]
    if not parts or parts[0] != "required":
        return None
    if len(parts) > 1 and parts[1] in ("sms", "app"):
        return parts[1]
    return "unknown"


def _forbidden(response: "Response") -> ApiError:
    body = (response.body or "").lower()
    if "rate limit exceeded" in body:
        return RateLimitExceededError.from_response(response)
    if "secondary rate limit" in body:
        return SecondaryRateLimitExceededError.from_response(response)
    if "number of login attempts exceeded" in body:
        return LoginAttemptsExceededError.from_response(response)
    if "abuse-rate-limits" in body or "abuse detection mechanism" in body:
        return AbuseError.from_response(response)
    return ForbiddenError.from_response(response)


def _unauthorized(response: "Response") -> ApiError:
    two_factor_type = parse_two_factor_type(response.headers)
    if two_factor_type is None:
        return AuthorizationError.from_response(response)
    return TwoFactorRequiredError(
        response.status_code,
        response.body,
        response.headers,
        two_factor_type=two_factor_type,
    )


_STATUS_ERRORS = {
    401: _unauthorized,
    403: _forbidden,
    404: NotFoundError.from_response,
    422: ApiValidationError.from_response,
    451: LegalRestrictionError.from_response,
}


def raise_for_status(response: "Response") -> None:
    """Raise the exception matching a non-2xx response.

    Args:
        response: Response captured from the wire.

    Raises:
        ApiError: Subclass selected by status code.
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    factory = _STATUS_ERRORS.get(status)
    if factory is not None:
        error = factory(response)
    elif status >= 400:
        error = ApiError.from_response(response)
    else:
        error = TransportError.from_response(response)

    logger.debug("HTTP %d mapped to %s", status, type(error).__name__)
    raise error
