from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine
    from contextlib import AbstractAsyncContextManager

    from .envelope import DeliveryEnvelope


@runtime_checkable
class IDeliveryChannel(Protocol):
    """
    Port for the broker channel a dispatcher consumes from and publishes to.

    The channel is shared by every delivery of a dispatcher; implementations
    must tolerate concurrent calls.
    """

    async def subscribe(
        self,
        queue_name: str,
        on_receive: Callable[[DeliveryEnvelope], Coroutine[Any, Any, None]],
        *,
        auto_ack: bool = False,
    ) -> str:
        """
        Start consuming *queue_name*.

        Args:
            queue_name: Existing queue to consume.
            on_receive: Async callback awaited once per delivery.
            auto_ack: Let the broker settle deliveries before *on_receive*.

        Returns:
            The consumer tag of the new subscription.
        """
        ...

    async def cancel(self, consumer_tag: str) -> None:
        """Stop delivering to the subscription *consumer_tag*."""
        ...

    async def ack(self, delivery_tag: int, *, multiple: bool = False) -> None:
        """Acknowledge the delivery identified by *delivery_tag*."""
        ...

    async def nack(
        self,
        delivery_tag: int,
        *,
        multiple: bool = False,
        requeue: bool = True,
    ) -> None:
        """Negatively acknowledge *delivery_tag*, optionally requeueing it."""
        ...

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        *,
        properties: dict[str, Any] | None = None,
    ) -> None:
        """Publish *body* to *exchange* with *routing_key*."""
        ...


@runtime_checkable
class IServiceScope(Protocol):
    """Service resolution context owned by a single delivery."""

    def resolve(self, service_type: type[Any]) -> Any:
        """
        Return an instance of *service_type*.

        Raises:
            ServiceResolutionError: The instance cannot be produced.
        """
        ...


@runtime_checkable
class IScopeFactory(Protocol):
    """Creates one ``IServiceScope`` per delivery."""

    def create_scope(self) -> AbstractAsyncContextManager[IServiceScope]:
        """Return an async context manager that releases the scope on exit."""
        ...
