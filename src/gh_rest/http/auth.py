"""Credentials and request authentication.

Credentials come from a :class:`CredentialStore` consulted once per request,
so a store backed by a mutable source (token refresh, interactive prompt) can
hand out different credentials between calls.
"""

import base64
import logging
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar, Protocol

from gh_rest.errors import AuthenticatorMismatchError
from gh_rest.http.builder import Application, Middleware
from gh_rest.http.envelope import Envelope, Request, set_header

logger = logging.getLogger(__name__)


class AuthenticationType(StrEnum):
    """How credentials are presented to the API."""

    ANONYMOUS = "anonymous"
    BASIC = "basic"
    OAUTH = "oauth"
    BEARER = "bearer"


@dataclass(frozen=True)
class Credentials:
    """Base class for credentials. Use the factory classmethods."""

    login: str | None = None
    password: str | None = None

    authentication_type: ClassVar[AuthenticationType] = AuthenticationType.ANONYMOUS

    @classmethod
    def anonymous(cls) -> "AnonymousCredentials":
        return ANONYMOUS

    @classmethod
    def basic(cls, login: str, password: str) -> "BasicCredentials":
        return BasicCredentials(login, password)

    @classmethod
    def token(cls, token: str) -> "TokenCredentials":
        return TokenCredentials(password=token)

    @classmethod
    def bearer(cls, token: str) -> "BearerCredentials":
        return BearerCredentials(password=token)

    def __repr__(self) -> str:
        login = f"login={self.login!r}, " if self.login else ""
        secret = "password=***" if self.password else "password=None"
        return f"{type(self).__name__}({login}{secret})"


@dataclass(frozen=True, repr=False)
class AnonymousCredentials(Credentials):
    """No credentials; requests carry no Authorization header."""

    def __post_init__(self) -> None:
        if self.login is not None or self.password is not None:
            raise ValueError("Anonymous credentials cannot carry a login or password")


@dataclass(frozen=True, repr=False)
class BasicCredentials(Credentials):
    """Login and password sent with HTTP basic authentication."""

    authentication_type: ClassVar[AuthenticationType] = AuthenticationType.BASIC

    def __post_init__(self) -> None:
        if not self.login:
            raise ValueError("login must not be empty")
        if not self.password:
            raise ValueError("password must not be empty")


@dataclass(frozen=True, repr=False)
class TokenCredentials(Credentials):
    """OAuth token sent in the Authorization header."""

    authentication_type: ClassVar[AuthenticationType] = AuthenticationType.OAUTH

    def __post_init__(self) -> None:
        if self.login is not None:
            raise ValueError("Token credentials cannot carry a login")
        if not self.password:
            raise ValueError("token must not be empty")


@dataclass(frozen=True, repr=False)
class BearerCredentials(TokenCredentials):
    """Bearer token, as used by GitHub Apps."""

    authentication_type: ClassVar[AuthenticationType] = AuthenticationType.BEARER


ANONYMOUS = AnonymousCredentials()


def authenticate_anonymous(request: Request, credentials: Credentials) -> None:
    """Leave the request untouched."""


def authenticate_basic(request: Request, credentials: Credentials) -> None:
    """Stamp ``Authorization: Basic base64(login:password)``.

    Raises:
        ValueError: If login or password is missing.
    """
    if credentials.login is None:
        raise ValueError("Basic authentication requires a login")
    if credentials.password is None:
        raise ValueError("Basic authentication requires a password")

    pair = f"{credentials.login}:{credentials.password}".encode()
    header = "Basic " + base64.b64encode(pair).decode("ascii")
    set_header(request.headers, "Authorization", header)


def _scheme_authenticator(scheme: str) -> Callable[[Request, Credentials], None]:
    def authenticate(request: Request, credentials: Credentials) -> None:
        if credentials.login is not None:
            raise AuthenticatorMismatchError(
                f"The {scheme} authenticator only supports token credentials, "
                "but a login was supplied"
            )
        if credentials.password is None:
            raise ValueError(f"{scheme} authentication requires a token")
        set_header(request.headers, "Authorization", f"{scheme} {credentials.password}")

    authenticate.__name__ = f"authenticate_{scheme.lower()}"
    authenticate.__doc__ = f"Stamp ``Authorization: {scheme} <token>``."
    return authenticate


authenticate_token = _scheme_authenticator("Token")
authenticate_bearer = _scheme_authenticator("Bearer")

AUTHENTICATORS: dict[AuthenticationType, Callable[[Request, Credentials], None]] = {
    AuthenticationType.ANONYMOUS: authenticate_anonymous,
    AuthenticationType.BASIC: authenticate_basic,
    AuthenticationType.OAUTH: authenticate_token,
    AuthenticationType.BEARER: authenticate_bearer,
}


def select_authenticator(credentials: Credentials) -> Callable[[Request, Credentials], None]:
    """Pick the authenticator for the kind of credentials given."""
    return AUTHENTICATORS[credentials.authentication_type]


class CredentialStore(Protocol):
    """Source of credentials, consulted once per request."""

    async def get_credentials(self) -> Credentials: ...


class InMemoryCredentialStore:
    """Credential store holding a single fixed set of credentials."""

    def __init__(self, credentials: Credentials) -> None:
        if credentials is None:
            raise ValueError("credentials must not be None")
        self._credentials = credentials

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    async def get_credentials(self) -> Credentials:
        return self._credentials


def _get_gh_cli_token() -> str | None:
    """Try to get token from GitHub CLI.

    Returns:
        Token from `gh auth token` or None if not available.
    """
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
        if result.returncode == 0:
            token = result.stdout.strip()
            if token:
                logger.info("Using GitHub token from gh CLI")
                return token
        else:
            logger.debug("gh CLI returned non-zero exit code (%d)", result.returncode)
    except FileNotFoundError:
        logger.debug("gh CLI not found")
    except subprocess.TimeoutExpired:
        logger.debug("gh CLI command timed out after 5 seconds")
    return None


class EnvironmentCredentialStore:
    """Credential store reading a token from the environment.

    Looks up, in order:
    1. The configured environment variable (GITHUB_TOKEN by default)
    2. GitHub CLI (`gh auth token`), unless disabled

    Falls back to anonymous credentials when neither yields a token. The lookup
    is repeated on every call so a rotated token is picked up.
    """

    def __init__(
        self,
        token_env: str = "GITHUB_TOKEN",
        authentication_type: AuthenticationType = AuthenticationType.OAUTH,
        use_gh_cli: bool = True,
    ) -> None:
        if not token_env:
            raise ValueError("token_env must not be empty")
        if authentication_type not in (AuthenticationType.OAUTH, AuthenticationType.BEARER):
            raise ValueError("authentication_type must be oauth or bearer")
        self.token_env = token_env
        self.authentication_type = authentication_type
        self.use_gh_cli = use_gh_cli
        self._gh_cli_token: str | None = None
        self._gh_cli_checked = False

    async def get_credentials(self) -> Credentials:
        token = os.environ.get(self.token_env)
        if not token and self.use_gh_cli:
            # gh CLI is only asked once per store
            if not self._gh_cli_checked:
                self._gh_cli_token = _get_gh_cli_token()
                self._gh_cli_checked = True
            token = self._gh_cli_token
        if not token:
            logger.debug("No token found in %s, using anonymous credentials", self.token_env)
            return ANONYMOUS
        if self.authentication_type is AuthenticationType.BEARER:
            return Credentials.bearer(token)
        return Credentials.token(token)


class Authenticator:
    """Applies credentials from a store to outgoing requests."""

    def __init__(self, credential_store: CredentialStore) -> None:
        if credential_store is None:
            raise ValueError("credential_store must not be None")
        self.credential_store = credential_store

    async def apply(self, request: Request) -> None:
        if request is None:
            raise ValueError("request must not be None")
        credentials = await self.credential_store.get_credentials() or ANONYMOUS
        select_authenticator(credentials)(request, credentials)


class AuthenticationMiddleware(Middleware):
    """Stamps the Authorization header before the request leaves the chain."""

    def __init__(self, app: Application, authenticator: Authenticator) -> None:
        super().__init__(app)
        self.authenticator = authenticator

    async def before(self, envelope: Envelope[Any]) -> None:
        await self.authenticator.apply(envelope.request)
