"""Tests for binding markers, bindings_for and ParameterBinder."""

from __future__ import annotations

from typing import Annotated, Any, get_args

import pytest
from pydantic import BaseModel, Field

from amqp_dispatch.binding import (
    BindingSource,
    FromBody,
    FromChannel,
    FromConsumerTag,
    FromDeliveryTag,
    FromExchange,
    FromModel,
    FromProperties,
    FromRedelivered,
    FromRoutingKey,
    ParameterBinder,
    bindings_for,
)
from amqp_dispatch.descriptor import ConsumerConfig, ConsumerDescriptor
from amqp_dispatch.envelope import DeliveryEnvelope, MessageProperties
from amqp_dispatch.exceptions import (
    BindingConfigurationError,
    MessagingSerializationError,
)
from amqp_dispatch.memory import InMemoryChannel


class Order(BaseModel):
    order_id: str


class EverythingConsumer:
    def handle(
        self,
        body: Annotated[Order, FromBody],
        tag: Annotated[int, FromDeliveryTag],
        channel: Annotated[Any, FromChannel],
        props: Annotated[MessageProperties, FromProperties],
        consumer_tag: Annotated[str, FromConsumerTag],
        exchange: Annotated[str, FromExchange],
        redelivered: Annotated[bool, FromRedelivered],
        routing_key: Annotated[str, FromRoutingKey],
    ) -> None:
        pass


@pytest.fixture
def envelope() -> DeliveryEnvelope:
    return DeliveryEnvelope(
        body=b'{"order_id":"o-1"}',
        delivery_tag=7,
        exchange="orders.ex",
        routing_key="orders.created",
        consumer_tag="ctag-9",
        redelivered=True,
        properties=MessageProperties(
            content_type="application/json", headers={"h": "v"}
        ),
    )


@pytest.fixture
def descriptor() -> ConsumerDescriptor:
    return ConsumerDescriptor.from_method(
        EverythingConsumer,
        "handle",
        consumer=ConsumerConfig(queue_name="orders"),
    )


def test_bindings_follow_parameter_order() -> None:
    bindings = bindings_for(EverythingConsumer.handle)
    assert [b.name for b in bindings] == [
        "body",
        "tag",
        "channel",
        "props",
        "consumer_tag",
        "exchange",
        "redelivered",
        "routing_key",
    ]
    assert [b.source for b in bindings] == list(BindingSource)
    assert bindings[0].annotation is Order


def test_from_model_is_channel_alias() -> None:
    assert FromModel is FromChannel


def test_resolve_maps_every_envelope_field(
    descriptor: ConsumerDescriptor, envelope: DeliveryEnvelope
) -> None:
    channel = InMemoryChannel()
    args = ParameterBinder().resolve(descriptor, envelope, channel)
    assert args == [
        Order(order_id="o-1"),
        7,
        channel,
        envelope.properties,
        "ctag-9",
        "orders.ex",
        True,
        "orders.created",
    ]
    assert args[2] is channel
    assert args[3] is envelope.properties


def test_resolve_is_recomputed_per_delivery(descriptor: ConsumerDescriptor) -> None:
    binder = ParameterBinder()
    channel = InMemoryChannel()
    first = binder.resolve(
        descriptor, DeliveryEnvelope(body=b'{"order_id":"a"}', delivery_tag=1), channel
    )
    second = binder.resolve(
        descriptor, DeliveryEnvelope(body=b'{"order_id":"b"}', delivery_tag=2), channel
    )
    assert first[0].order_id == "a"
    assert second[0].order_id == "b"
    assert (first[1], second[1]) == (1, 2)


def test_unannotated_parameter_is_rejected() -> None:
    class Bad:
        def handle(self, body: Annotated[bytes, FromBody], extra: int) -> None:
            pass

    with pytest.raises(BindingConfigurationError) as exc_info:
        bindings_for(Bad.handle)
    assert exc_info.value.parameter == "extra"
    assert "missing binding marker" in str(exc_info.value)


def test_parameter_with_two_markers_is_rejected() -> None:
    class Bad:
        def handle(self, value: Annotated[str, FromExchange, FromRoutingKey]) -> None:
            pass

    with pytest.raises(BindingConfigurationError, match="exactly one"):
        bindings_for(Bad.handle)


def test_variadic_parameters_are_rejected() -> None:
    class Bad:
        def handle(self, *args: Annotated[bytes, FromBody]) -> None:
            pass

    with pytest.raises(BindingConfigurationError, match="positional"):
        bindings_for(Bad.handle)


def test_annotated_without_marker_is_rejected() -> None:
    class Bad:
        def handle(self, body: Annotated[bytes, "just a note"]) -> None:
            pass

    with pytest.raises(BindingConfigurationError):
        bindings_for(Bad.handle)


def test_no_parameters_gives_empty_bindings() -> None:
    class Empty:
        def handle(self) -> None:
            pass

    assert bindings_for(Empty.handle) == ()


def test_malformed_annotation_is_rejected() -> None:
    class Bad:
        def handle(self, value: Annotated[int]) -> None:  # type: ignore[valid-type]
            pass

    with pytest.raises(BindingConfigurationError, match="unresolvable annotation"):
        bindings_for(Bad.handle)


class ConstrainedConsumer:
    def handle(
        self,
        quantity: Annotated[int, Field(gt=0), FromBody],
    ) -> None:
        pass


def test_non_marker_metadata_is_kept_on_the_annotation() -> None:
    (binding,) = bindings_for(ConstrainedConsumer.handle)
    assert binding.source is BindingSource.BODY
    base, *metadata = get_args(binding.annotation)
    assert base is int
    assert len(metadata) == 1
    assert not any(m is FromBody for m in metadata)


@pytest.mark.parametrize(
    ("body", "expected"),
    [(b"5", 5), (b"42", 42)],
)
def test_body_constraints_are_applied_when_decoding(
    body: bytes, expected: int
) -> None:
    descriptor = ConsumerDescriptor.from_method(
        ConstrainedConsumer, "handle", consumer=ConsumerConfig(queue_name="stock")
    )
    envelope = DeliveryEnvelope(body=body, delivery_tag=1)
    assert ParameterBinder().resolve(descriptor, envelope, InMemoryChannel()) == [
        expected
    ]


def test_body_violating_constraints_is_rejected() -> None:
    descriptor = ConsumerDescriptor.from_method(
        ConstrainedConsumer, "handle", consumer=ConsumerConfig(queue_name="stock")
    )
    envelope = DeliveryEnvelope(body=b"0", delivery_tag=1)
    with pytest.raises(MessagingSerializationError):
        ParameterBinder().resolve(descriptor, envelope, InMemoryChannel())
