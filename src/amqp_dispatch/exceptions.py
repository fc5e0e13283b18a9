"""Exceptions for amqp-dispatch."""

from __future__ import annotations


class DispatchError(Exception):
    """Root exception for the whole amqp-dispatch package."""


class HandlerError(DispatchError):
    """Base class for handler related errors (registration, resolution)."""


class HandlerRegistrationError(HandlerError):
    """Raised when a consumer method cannot be registered.

    Usage: ConsumerRegistry raises this on conflicting descriptors for the
    same method, and ConsumerDescriptor raises it for a publisher declared
    without a consumer.
    """


class BindingConfigurationError(HandlerRegistrationError):
    """Raised when a handler parameter has no usable binding marker."""

    def __init__(self, handler: str, parameter: str, reason: str) -> None:
        self.handler = handler
        self.parameter = parameter
        super().__init__(f"Parameter {parameter!r} of {handler}: {reason}")


class ServiceResolutionError(HandlerError):
    """Raised when a service scope cannot produce a handler instance."""

    def __init__(self, service_type: type, reason: str | None = None) -> None:
        self.service_type = service_type
        msg = f"Could not resolve {service_type.__name__}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class InfrastructureError(DispatchError):
    """Base class for all infrastructure-related errors."""


class MessagingError(InfrastructureError):
    """Base class for all messaging-related infrastructure errors."""


class MessagingConnectionError(MessagingError):
    """Raised when connectivity to the message broker fails."""


class MessagingSerializationError(MessagingError):
    """Raised when a message body cannot be encoded or decoded."""


class DeliverySettlementError(MessagingError):
    """Raised when an ack/nack refers to a delivery the channel does not hold."""

    def __init__(self, delivery_tag: int) -> None:
        self.delivery_tag = delivery_tag
        super().__init__(f"No pending delivery with tag {delivery_tag}")
