"""Per-delivery service scopes built from a plain handler factory."""

from __future__ import annotations

import contextlib
import inspect
import logging
from typing import TYPE_CHECKING, Any

from .exceptions import ServiceResolutionError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = logging.getLogger("amqp_dispatch.scope")


class FactoryServiceScope:
    """Scope that creates each requested service once via a factory.

    Instances live until the scope is closed; on close every instance that
    exposes ``aclose()`` or ``close()`` is released in reverse creation order.
    """

    def __init__(self, handler_factory: Callable[[type[Any]], Any]) -> None:
        self._handler_factory = handler_factory
        self._instances: dict[type[Any], Any] = {}
        self._closed = False

    def resolve(self, service_type: type[Any]) -> Any:
        if self._closed:
            raise ServiceResolutionError(service_type, "scope is closed")
        if service_type in self._instances:
            return self._instances[service_type]
        try:
            instance = self._handler_factory(service_type)
        except Exception as e:
            raise ServiceResolutionError(service_type, str(e)) from e
        if instance is None:
            raise ServiceResolutionError(service_type, "factory returned None")
        self._instances[service_type] = instance
        return instance

    async def aclose(self) -> None:
        """Release all created instances. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        instances = list(self._instances.values())
        self._instances.clear()
        for instance in reversed(instances):
            closer = getattr(instance, "aclose", None) or getattr(
                instance, "close", None
            )
            if closer is None:
                continue
            try:
                result = closer()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Failed to release %s at end of scope", type(instance).__name__
                )


class FactoryScopeFactory:
    """Default ``IScopeFactory``: a fresh ``FactoryServiceScope`` per delivery.

    Usage::

        scopes = FactoryScopeFactory(lambda cls: cls(repository=repo))
        dispatcher = ConsumerDispatcher(descriptor, channel, scopes)
    """

    def __init__(
        self,
        handler_factory: Callable[[type[Any]], Any] | None = None,
    ) -> None:
        self._handler_factory = handler_factory or (lambda cls: cls())

    @contextlib.asynccontextmanager
    async def create_scope(self) -> AsyncIterator[FactoryServiceScope]:
        scope = FactoryServiceScope(self._handler_factory)
        try:
            yield scope
        finally:
            await scope.aclose()
