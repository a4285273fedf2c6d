"""Runtime handler registry — picks the handler that owns a runtime tag.

The ``HandlerRegistry`` is a plain class (not a singleton) so tests can
create fresh instances.  Handlers are consulted in registration order and
the first one whose ``can_handle`` accepts the tag wins.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Protocol, runtime_checkable

from pyhandler.contracts import BuildResult
from pyhandler.errors import HandlerNotFound

logger = logging.getLogger(__name__)


@runtime_checkable
class RuntimeHandler(Protocol):
    """Capability interface every language handler implements."""

    def can_handle(self, runtime: str) -> bool: ...

    def should_build(self, request: Any) -> bool: ...

    def start_worker(self, request: Any) -> Awaitable[None]: ...

    def stop_worker(self, worker_id: str) -> Awaitable[None]: ...

    def build(self, request: Any) -> Awaitable[BuildResult]: ...


class HandlerRegistry:
    """Ordered set of runtime handlers with single-pass dispatch.

    Usage::

        reg = HandlerRegistry()
        reg.register(PythonHandler(pool, ServerConfig(port=13557)))
        handler = reg.for_runtime("python3.9")
        result = await handler.build({...})
    """

    def __init__(self) -> None:
        self._handlers: list[RuntimeHandler] = []

    def register(self, handler: RuntimeHandler) -> None:
        """Add *handler*.  Registering the same instance twice is an error."""
        if any(h is handler for h in self._handlers):
            raise ValueError(f"Handler {type(handler).__name__} is already registered")
        self._handlers.append(handler)
        logger.debug("[registry] registered %s", type(handler).__name__)

    def for_runtime(self, runtime: str) -> RuntimeHandler:
        """Return the first handler accepting *runtime*.

        Raises ``HandlerNotFound`` when none does.
        """
        for handler in self._handlers:
            if handler.can_handle(runtime):
                return handler
        raise HandlerNotFound(runtime, self.handler_names())

    def should_build(self, request: Any) -> bool:
        """True when any handler considers the change relevant."""
        return any(h.should_build(request) for h in self._handlers)

    def handler_names(self) -> list[str]:
        return [type(h).__name__ for h in self._handlers]

    def __len__(self) -> int:
        return len(self._handlers)
