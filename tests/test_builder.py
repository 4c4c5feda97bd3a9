"""Tests for middleware composition."""

from typing import Any

import pytest

from gh_rest.errors import FrozenPipelineError
from gh_rest.http.builder import Application, Builder, Middleware
from gh_rest.http.envelope import Envelope, Request


class RecordingMiddleware(Middleware):
    """Middleware that records its hooks into a shared log."""

    def __init__(self, app: Application, name: str, log: list[str]) -> None:
        super().__init__(app)
        self.name = name
        self.log = log

    async def before(self, envelope: Envelope[Any]) -> None:
        self.log.append(f"{self.name}.before")

    async def after(self, envelope: Envelope[Any]) -> None:
        self.log.append(f"{self.name}.after")


class RecordingAdapter:
    """Terminal application recording that it ran."""

    def __init__(self, log: list[str]) -> None:
        self.log = log

    async def invoke(self, envelope: Envelope[Any]) -> "RecordingAdapter":
        self.log.append("adapter")
        return self


class FailingAdapter:
    async def invoke(self, envelope: Envelope[Any]) -> "FailingAdapter":
        raise RuntimeError("boom")


def make_envelope() -> Envelope[Any]:
    return Envelope(request=Request(method="GET", base_address="https://example.com/", endpoint="x"))


class TestMiddleware:
    """Tests for the Middleware base class."""

    def test_requires_app(self) -> None:
        """Test that a middleware cannot wrap None."""
        with pytest.raises(ValueError):
            Middleware(None)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_default_hooks_pass_through(self) -> None:
        """Test that the base middleware only calls the inner app."""
        log: list[str] = []
        middleware = Middleware(RecordingAdapter(log))

        result = await middleware.invoke(make_envelope())

        assert result is middleware
        assert log == ["adapter"]


class TestBuilder:
    """Tests for Builder."""

    @pytest.mark.asyncio
    async def test_hooks_run_in_registration_order(self) -> None:
        """Test before hooks run outside-in and after hooks inside-out."""
        log: list[str] = []
        builder = Builder()
        builder.use(lambda app: RecordingMiddleware(app, "a", log))
        builder.use(lambda app: RecordingMiddleware(app, "b", log))

        app = builder.run(RecordingAdapter(log))
        await app.invoke(make_envelope())

        assert log == ["a.before", "b.before", "adapter", "b.after", "a.after"]

    @pytest.mark.asyncio
    async def test_run_without_handlers_returns_adapter(self) -> None:
        """Test that an empty builder yields the adapter itself."""
        adapter = RecordingAdapter([])
        assert Builder().run(adapter) is adapter

    def test_use_returns_builder(self) -> None:
        """Test that use supports chaining."""
        builder = Builder()
        assert builder.use(Middleware) is builder
        assert builder.handlers == (Middleware,)

    def test_use_none_rejected(self) -> None:
        """Test that None cannot be registered."""
        with pytest.raises(ValueError):
            Builder().use(None)  # type: ignore[arg-type]

    def test_use_after_run_raises(self) -> None:
        """Test that the builder is frozen after run."""
        builder = Builder()
        builder.run(RecordingAdapter([]))

        assert builder.frozen
        with pytest.raises(FrozenPipelineError):
            builder.use(Middleware)

    def test_run_twice_raises(self) -> None:
        """Test that run may only be called once."""
        builder = Builder()
        builder.run(RecordingAdapter([]))

        with pytest.raises(FrozenPipelineError):
            builder.run(RecordingAdapter([]))

    def test_frozen_builder_keeps_handlers(self) -> None:
        """Test that a rejected use leaves the handler list unchanged."""
        builder = Builder().use(Middleware)
        builder.run(RecordingAdapter([]))

        with pytest.raises(FrozenPipelineError):
            builder.use(Middleware)
        assert len(builder.handlers) == 1

    def test_run_defaults_to_httpx_transport(self) -> None:
        """Test that run without an adapter uses the httpx transport."""
        from gh_rest.http.transport import HttpxTransport

        assert isinstance(Builder().run(), HttpxTransport)

    @pytest.mark.asyncio
    async def test_errors_propagate_and_skip_after(self) -> None:
        """Test that an inner failure propagates and after hooks do not run."""
        log: list[str] = []
        builder = Builder().use(lambda app: RecordingMiddleware(app, "a", log))
        app = builder.run(FailingAdapter())

        with pytest.raises(RuntimeError, match="boom"):
            await app.invoke(make_envelope())

        assert log == ["a.before"]
