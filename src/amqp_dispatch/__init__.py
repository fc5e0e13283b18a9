"""Consumer dispatch for AMQP brokers — bind deliveries to handler methods."""

from __future__ import annotations

from .binding import (
    Binding,
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
    ParameterBinding,
    bindings_for,
)
from .codec import BodyCodec, IStructuredSerializer, PydanticJsonSerializer
from .correlation import get_correlation_id
from .descriptor import (
    AcknowledgementMode,
    ConsumerConfig,
    ConsumerDescriptor,
    PublisherConfig,
    consumer,
    publisher,
)
from .dispatcher import ConsumerDispatcher, InvocationResult
from .envelope import DeliveryEnvelope, MessageProperties
from .exceptions import (
    BindingConfigurationError,
    DeliverySettlementError,
    DispatchError,
    HandlerError,
    HandlerRegistrationError,
    InfrastructureError,
    MessagingConnectionError,
    MessagingError,
    MessagingSerializationError,
    ServiceResolutionError,
)
from .host import ConsumerHost
from .memory import InMemoryChannel
from .ports import IDeliveryChannel, IScopeFactory, IServiceScope
from .registry import ConsumerRegistry
from .scope import FactoryScopeFactory, FactoryServiceScope

__all__ = [
    "AcknowledgementMode",
    "Binding",
    "BindingConfigurationError",
    "BindingSource",
    "BodyCodec",
    "ConsumerConfig",
    "ConsumerDescriptor",
    "ConsumerDispatcher",
    "ConsumerHost",
    "ConsumerRegistry",
    "DeliveryEnvelope",
    "DeliverySettlementError",
    "DispatchError",
    "FactoryScopeFactory",
    "FactoryServiceScope",
    "FromBody",
    "FromChannel",
    "FromConsumerTag",
    "FromDeliveryTag",
    "FromExchange",
    "FromModel",
    "FromProperties",
    "FromRedelivered",
    "FromRoutingKey",
    "HandlerError",
    "HandlerRegistrationError",
    "IDeliveryChannel",
    "IScopeFactory",
    "IServiceScope",
    "IStructuredSerializer",
    "InMemoryChannel",
    "InfrastructureError",
    "InvocationResult",
    "MessageProperties",
    "MessagingConnectionError",
    "MessagingError",
    "MessagingSerializationError",
    "ParameterBinder",
    "ParameterBinding",
    "PublisherConfig",
    "PydanticJsonSerializer",
    "ServiceResolutionError",
    "bindings_for",
    "consumer",
    "get_correlation_id",
    "publisher",
]
