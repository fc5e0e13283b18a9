"""Parameter binding — map handler parameters onto delivery envelope fields.

Handlers declare where each argument comes from with ``typing.Annotated``::

    class OrderConsumer:
        @consumer("orders")
        async def handle(
            self,
            order: Annotated[Order, FromBody],
            tag: Annotated[int, FromDeliveryTag],
        ) -> None: ...

Bindings are derived once, at registration time. Every parameter must carry
exactly one marker; anything else is a ``BindingConfigurationError``.
"""

from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .codec import BodyCodec
from .exceptions import BindingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from .descriptor import ConsumerDescriptor
    from .envelope import DeliveryEnvelope
    from .ports import IDeliveryChannel


class BindingSource(str, Enum):
    """Where a handler argument is taken from."""

    BODY = "body"
    DELIVERY_TAG = "delivery_tag"
    CHANNEL = "channel"
    PROPERTIES = "properties"
    CONSUMER_TAG = "consumer_tag"
    EXCHANGE = "exchange"
    REDELIVERED = "redelivered"
    ROUTING_KEY = "routing_key"


@dataclass(frozen=True)
class Binding:
    """Marker placed in ``Annotated[...]`` metadata of a handler parameter."""

    source: BindingSource

    def __repr__(self) -> str:
        return f"Binding({self.source.value})"


FromBody = Binding(BindingSource.BODY)
FromDeliveryTag = Binding(BindingSource.DELIVERY_TAG)
FromChannel = Binding(BindingSource.CHANNEL)
FromModel = FromChannel
FromProperties = Binding(BindingSource.PROPERTIES)
FromConsumerTag = Binding(BindingSource.CONSUMER_TAG)
FromExchange = Binding(BindingSource.EXCHANGE)
FromRedelivered = Binding(BindingSource.REDELIVERED)
FromRoutingKey = Binding(BindingSource.ROUTING_KEY)


@dataclass(frozen=True)
class ParameterBinding:
    """One handler parameter and the envelope field that feeds it."""

    name: str
    source: BindingSource
    annotation: Any = Any


def bindings_for(
    function: Callable[..., Any],
    *,
    skip_first: bool = True,
) -> tuple[ParameterBinding, ...]:
    """Derive the ordered bindings of *function* from its annotations.

    Args:
        function: The handler function (unbound, as found on the class).
        skip_first: Skip the leading ``self``/``cls`` parameter.

    Raises:
        BindingConfigurationError: A parameter is variadic, keyword-only,
            unannotated, or has zero or several binding markers.
    """
    qualname = getattr(function, "__qualname__", repr(function))
    try:
        hints = typing.get_type_hints(function, include_extras=True)
    except (NameError, TypeError) as e:
        raise BindingConfigurationError(
            qualname, "<annotations>", f"unresolvable annotation ({e})"
        ) from e

    parameters = list(inspect.signature(function).parameters.values())
    if skip_first:
        parameters = parameters[1:]

    result: list[ParameterBinding] = []
    for param in parameters:
        if param.kind not in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            raise BindingConfigurationError(
                qualname, param.name, "only positional parameters can be bound"
            )
        hint = hints.get(param.name, inspect.Parameter.empty)
        if typing.get_origin(hint) is not typing.Annotated:
            raise BindingConfigurationError(
                qualname, param.name, "missing binding marker"
            )
        annotation, *metadata = typing.get_args(hint)
        markers = [m for m in metadata if isinstance(m, Binding)]
        constraints = [m for m in metadata if not isinstance(m, Binding)]
        if len(markers) != 1:
            raise BindingConfigurationError(
                qualname,
                param.name,
                f"expected exactly one binding marker, found {len(markers)}",
            )
        if constraints:
            annotation = typing.Annotated[(annotation, *constraints)]
        result.append(ParameterBinding(param.name, markers[0].source, annotation))
    return tuple(result)


class ParameterBinder:
    """Resolve the positional call arguments of a handler for one delivery.

    Stateless apart from the codec; safe to share between deliveries.
    """

    def __init__(self, codec: BodyCodec | None = None) -> None:
        self._codec = codec or BodyCodec()

    def resolve(
        self,
        descriptor: ConsumerDescriptor,
        envelope: DeliveryEnvelope,
        channel: IDeliveryChannel,
    ) -> list[Any]:
        """Return one argument per binding of *descriptor*, in order."""
        return [
            self.resolve_one(binding, envelope, channel)
            for binding in descriptor.bindings
        ]

    def resolve_one(
        self,
        binding: ParameterBinding,
        envelope: DeliveryEnvelope,
        channel: IDeliveryChannel,
    ) -> Any:
        source = binding.source
        if source is BindingSource.BODY:
            return self._codec.decode(envelope.body, binding.annotation)
        if source is BindingSource.DELIVERY_TAG:
            return envelope.delivery_tag
        if source is BindingSource.CHANNEL:
            return channel
        if source is BindingSource.PROPERTIES:
            return envelope.properties
        if source is BindingSource.CONSUMER_TAG:
            return envelope.consumer_tag
        if source is BindingSource.EXCHANGE:
            return envelope.exchange
        if source is BindingSource.REDELIVERED:
            return envelope.redelivered
        if source is BindingSource.ROUTING_KEY:
            return envelope.routing_key
        raise ValueError(f"Unsupported binding source: {source!r}")
