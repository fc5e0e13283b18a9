"""Correlation ID of the delivery currently being dispatched."""

from __future__ import annotations

import contextlib
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .envelope import DeliveryEnvelope

# ContextVar so concurrent deliveries (separate tasks) never see each other's ids.
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return _correlation_id.get()


def correlation_id_of(envelope: DeliveryEnvelope) -> str | None:
    """Correlation id of a delivery, falling back to its message id."""
    props = envelope.properties
    return props.correlation_id or props.message_id


@contextlib.contextmanager
def delivery_context(envelope: DeliveryEnvelope) -> Iterator[str | None]:
    """Expose the delivery's correlation id for the duration of the block."""
    token = _correlation_id.set(correlation_id_of(envelope))
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)
