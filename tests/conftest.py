"""Shared fixtures for gh-rest tests."""

from typing import Any

import pytest

from gh_rest.http.envelope import Request, Response
from gh_rest.http.transport import Transport

API_URL = "https://api.github.com/"


class StubTransport(Transport):
    """Transport answering from a queue of canned responses.

    Every request is recorded (with a snapshot of its headers) so tests can
    assert on what reached the wire.
    """

    def __init__(self, *responses: Response) -> None:
        self.responses = list(responses)
        self.requests: list[Request] = []
        self.timeout: float | None = None
        self.closed = False

    def queue(self, *responses: Response) -> None:
        self.responses.extend(responses)

    async def send(self, request: Request) -> Response:
        self.requests.append(
            Request(
                method=request.method,
                base_address=request.base_address,
                endpoint=request.endpoint,
                headers=dict(request.headers),
                body=request.body,
                params=dict(request.params) if request.params else None,
                content_type=request.content_type,
                timeout=request.timeout,
            )
        )
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.endpoint}")
        return self.responses.pop(0)

    def set_request_timeout(self, timeout: float) -> None:
        self.timeout = timeout

    async def close(self) -> None:
        self.closed = True


def json_response(
    body: str = "{}",
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> Response:
    """Build a JSON response as a transport would return it."""
    return Response(
        status_code=status_code,
        body=body,
        headers={"Content-Type": "application/json; charset=utf-8", **(headers or {})},
        content_type="application/json; charset=utf-8",
    )


def link_header(base: str, **relations: Any) -> str:
    """Build a Link header from relation=page pairs."""
    return ", ".join(f'<{base}?page={page}>; rel="{rel}"' for rel, page in relations.items())


@pytest.fixture
def stub_transport() -> StubTransport:
    """Create an empty stub transport."""
    return StubTransport()


@pytest.fixture(autouse=True)
def _no_gh_cli(monkeypatch: pytest.MonkeyPatch) -> None:
    """Never shell out to the gh CLI during tests."""
    monkeypatch.setattr("gh_rest.http.auth._get_gh_cli_token", lambda: None)
