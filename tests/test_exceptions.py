"""Tests for amqp-dispatch exceptions."""

from __future__ import annotations

from amqp_dispatch.exceptions import (
    BindingConfigurationError,
    DeliverySettlementError,
    DispatchError,
    HandlerRegistrationError,
    InfrastructureError,
    MessagingError,
    MessagingSerializationError,
    ServiceResolutionError,
)


def test_messaging_error_is_infrastructure() -> None:
    assert issubclass(MessagingError, InfrastructureError)
    assert issubclass(MessagingSerializationError, MessagingError)
    assert issubclass(InfrastructureError, DispatchError)


def test_binding_error_is_registration_error() -> None:
    e = BindingConfigurationError("Consumer.handle", "body", "missing binding marker")
    assert isinstance(e, HandlerRegistrationError)
    assert e.handler == "Consumer.handle"
    assert e.parameter == "body"
    assert "'body'" in str(e)


def test_service_resolution_error_names_type() -> None:
    e = ServiceResolutionError(int, "boom")
    assert e.service_type is int
    assert str(e) == "Could not resolve int: boom"
    assert str(ServiceResolutionError(int)) == "Could not resolve int"


def test_delivery_settlement_error_has_tag() -> None:
    e = DeliverySettlementError(42)
    assert e.delivery_tag == 42
    assert "42" in str(e)
