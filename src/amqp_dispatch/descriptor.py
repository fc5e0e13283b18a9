"""ConsumerDescriptor — static metadata for one consumer handler method."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .binding import ParameterBinding, bindings_for
from .exceptions import HandlerRegistrationError

if TYPE_CHECKING:
    from collections.abc import Callable

F = TypeVar("F", bound="Callable[..., Any]")

CONSUMER_ATTR = "__amqp_consumer__"
PUBLISHER_ATTR = "__amqp_publisher__"


class AcknowledgementMode(str, Enum):
    """When a delivery is acknowledged.

    ``AUTO_ACK`` lets the broker settle the delivery before the handler runs;
    the other two acknowledge manually after invocation or after publish.
    """

    AUTO_ACK = "auto_ack"
    ACK_ON_INVOKE = "ack_on_invoke"
    ACK_ON_PUBLISH = "ack_on_publish"


class ConsumerConfig(BaseModel):
    """Queue subscription settings of a consumer method."""

    model_config = ConfigDict(frozen=True)

    queue_name: str = Field(..., min_length=1)
    ack_mode: AcknowledgementMode = AcknowledgementMode.ACK_ON_INVOKE
    requeue_on_failure: bool = Field(
        default=True, description="requeue flag passed to nack on failure"
    )


class PublisherConfig(BaseModel):
    """Where the return value of a consumer method is published."""

    model_config = ConfigDict(frozen=True)

    exchange: str = Field(default="", description="'' is the default exchange")
    routing_key: str = ""


def consumer(
    queue_name: str,
    *,
    ack_mode: AcknowledgementMode = AcknowledgementMode.ACK_ON_INVOKE,
    requeue_on_failure: bool = True,
) -> Callable[[F], F]:
    """Mark a method as the consumer of *queue_name*."""
    config = ConsumerConfig(
        queue_name=queue_name,
        ack_mode=ack_mode,
        requeue_on_failure=requeue_on_failure,
    )

    def decorator(func: F) -> F:
        setattr(func, CONSUMER_ATTR, config)
        return func

    return decorator


def publisher(exchange: str, routing_key: str = "") -> Callable[[F], F]:
    """Publish the return value of a consumer method to *exchange*."""
    config = PublisherConfig(exchange=exchange, routing_key=routing_key)

    def decorator(func: F) -> F:
        setattr(func, PUBLISHER_ATTR, config)
        return func

    return decorator


@dataclass(frozen=True)
class ConsumerDescriptor:
    """Immutable description of one registered handler method.

    Built once at registration time; dispatchers read it for every delivery
    and never modify it.
    """

    handler_type: type[Any]
    method_name: str
    bindings: tuple[ParameterBinding, ...]
    consumer: ConsumerConfig
    publisher: PublisherConfig | None = None

    @property
    def qualified_name(self) -> str:
        return f"{self.handler_type.__name__}.{self.method_name}"

    @property
    def is_publisher(self) -> bool:
        return self.publisher is not None

    @property
    def ack_mode(self) -> AcknowledgementMode:
        return self.consumer.ack_mode

    @classmethod
    def from_method(
        cls,
        handler_type: type[Any],
        method_name: str,
        *,
        consumer: ConsumerConfig | None = None,
        publisher: PublisherConfig | None = None,
    ) -> ConsumerDescriptor:
        """Build the descriptor of ``handler_type.method_name``.

        Explicit *consumer*/*publisher* arguments win over the configuration
        attached by the ``@consumer``/``@publisher`` decorators.

        Raises:
            HandlerRegistrationError: The method does not exist, has no
                consumer configuration, or has invalid parameter bindings.
        """
        try:
            raw = inspect.getattr_static(handler_type, method_name)
        except AttributeError as e:
            raise HandlerRegistrationError(
                f"{handler_type.__name__} has no method {method_name!r}"
            ) from e

        if isinstance(raw, staticmethod):
            function, skip_first = raw.__func__, False
        elif isinstance(raw, classmethod):
            function, skip_first = raw.__func__, True
        elif inspect.isfunction(raw):
            function, skip_first = raw, True
        else:
            raise HandlerRegistrationError(
                f"{handler_type.__name__}.{method_name} is not a method"
            )

        consumer = consumer or getattr(function, CONSUMER_ATTR, None)
        publisher = publisher or getattr(function, PUBLISHER_ATTR, None)
        if consumer is None:
            what = "publisher" if publisher is not None else "method"
            raise HandlerRegistrationError(
                f"{handler_type.__name__}.{method_name} is a {what} "
                "without consumer configuration"
            )

        return cls(
            handler_type=handler_type,
            method_name=method_name,
            bindings=bindings_for(function, skip_first=skip_first),
            consumer=consumer,
            publisher=publisher,
        )


def consumer_methods(handler_type: type[Any]) -> list[str]:
    """Return the names of methods decorated with ``@consumer`` or ``@publisher``."""
    names: list[str] = []
    for name, raw in vars(handler_type).items():
        function = getattr(raw, "__func__", raw)
        if hasattr(function, CONSUMER_ATTR) or hasattr(function, PUBLISHER_ATTR):
            names.append(name)
    return names
