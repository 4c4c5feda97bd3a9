"""Middleware chain composition.

A :class:`Builder` collects middleware factories and folds them around a
terminal transport, producing a single :class:`Application`. The call tree for
``builder.use(a); builder.use(b); builder.run(adapter)`` is::

    a.before -> b.before -> adapter -> b.after -> a.after

Once :meth:`Builder.run` has been called the builder is frozen.
"""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from gh_rest.errors import FrozenPipelineError
from gh_rest.http.envelope import Envelope

if TYPE_CHECKING:
    from gh_rest.http.transport import Transport

logger = logging.getLogger(__name__)


class Application(Protocol):
    """A callable stage of the pipeline."""

    async def invoke(self, envelope: Envelope[Any]) -> "Application": ...


MiddlewareFactory = Callable[[Application], Application]


class Middleware:
    """Pipeline stage with a pre-request and a post-response hook.

    Subclasses override :meth:`before` and/or :meth:`after`. Exceptions raised
    by either hook, or by any inner stage, propagate unchanged.
    """

    def __init__(self, app: Application) -> None:
        if app is None:
            raise ValueError("app must not be None")
        self.app = app

    async def invoke(self, envelope: Envelope[Any]) -> Application:
        await self.before(envelope)
        await self.app.invoke(envelope)
        await self.after(envelope)
        return self

    async def before(self, envelope: Envelope[Any]) -> None:
        """Mutate the request before it is sent."""

    async def after(self, envelope: Envelope[Any]) -> None:
        """Mutate the response after it has been received."""


class Builder:
    """Builds up the middleware application for a connection."""

    def __init__(self) -> None:
        self._handlers: list[MiddlewareFactory] = []
        self._frozen = False

    @property
    def handlers(self) -> tuple[MiddlewareFactory, ...]:
        return tuple(self._handlers)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def use(self, handler: MiddlewareFactory) -> "Builder":
        """Append a middleware factory.

        Args:
            handler: Callable taking the inner application and returning the
                wrapping one, typically a :class:`Middleware` subclass.

        Returns:
            The builder, for chaining.

        Raises:
            ValueError: If handler is None.
            FrozenPipelineError: If the stack has already been built.
        """
        if handler is None:
            raise ValueError("handler must not be None")
        if self._frozen:
            raise FrozenPipelineError(
                "The middleware stack has already been built. You cannot modify the handlers now"
            )
        self._handlers.append(handler)
        return self

    def run(self, adapter: "Transport | Application | None" = None) -> Application:
        """Compose the registered handlers around the terminal adapter.

        Args:
            adapter: Innermost application. Defaults to a new HttpxTransport.

        Returns:
            The outermost application.

        Raises:
            FrozenPipelineError: If run has already been called.
        """
        if self._frozen:
            raise FrozenPipelineError(
                "The middleware stack has already been built. You can only call run once"
            )
        self._frozen = True

        if adapter is None:
            from gh_rest.http.transport import HttpxTransport

            adapter = HttpxTransport()

        app: Application = adapter
        for handler in reversed(self._handlers):
            app = handler(app)

        logger.debug("Built middleware stack with %d handler(s)", len(self._handlers))
        return app
