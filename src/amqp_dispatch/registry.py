"""ConsumerRegistry — one descriptor per handler method, with conflict detection."""

from __future__ import annotations

import logging
from typing import Any

from .descriptor import (
    ConsumerConfig,
    ConsumerDescriptor,
    PublisherConfig,
    consumer_methods,
)
from .exceptions import HandlerRegistrationError

logger = logging.getLogger("amqp_dispatch.registry")


class ConsumerRegistry:
    """Declarative store of consumer descriptors.

    Register handler *classes* (or single methods) during bootstrapping; a
    ``ConsumerHost`` later starts one dispatcher per descriptor.

    **Conflict detection:** registering a different descriptor for a method
    that is already registered raises ``HandlerRegistrationError``.
    Re-registering an identical descriptor is a no-op.
    """

    def __init__(self) -> None:
        self._descriptors: dict[tuple[type[Any], str], ConsumerDescriptor] = {}

    # ── Registration ─────────────────────────────────────────────

    def register(
        self,
        handler_type: type[Any],
        method_name: str,
        *,
        consumer: ConsumerConfig | None = None,
        publisher: PublisherConfig | None = None,
    ) -> ConsumerDescriptor:
        descriptor = ConsumerDescriptor.from_method(
            handler_type, method_name, consumer=consumer, publisher=publisher
        )
        return self.add(descriptor)

    def register_class(self, handler_type: type[Any]) -> list[ConsumerDescriptor]:
        """Register every ``@consumer`` method declared on *handler_type*."""
        return [
            self.register(handler_type, name) for name in consumer_methods(handler_type)
        ]

    def add(self, descriptor: ConsumerDescriptor) -> ConsumerDescriptor:
        key = (descriptor.handler_type, descriptor.method_name)
        existing = self._descriptors.get(key)
        if existing is not None:
            if existing == descriptor:
                return existing
            msg = (
                f"Conflicting consumer registration for "
                f"{descriptor.qualified_name}: already bound to queue "
                f"{existing.consumer.queue_name!r}"
            )
            raise HandlerRegistrationError(msg)
        self._descriptors[key] = descriptor
        logger.debug(
            "Registered consumer %s -> queue %s (%s)",
            descriptor.qualified_name,
            descriptor.consumer.queue_name,
            descriptor.ack_mode.value,
        )
        return descriptor

    # ── Lookup ───────────────────────────────────────────────────

    def get(
        self, handler_type: type[Any], method_name: str
    ) -> ConsumerDescriptor | None:
        return self._descriptors.get((handler_type, method_name))

    def descriptors(self) -> list[ConsumerDescriptor]:
        """Return all descriptors in registration order."""
        return list(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    # ── Cleanup ──────────────────────────────────────────────────

    def clear(self) -> None:
        """Clear all registered descriptors (testing utility)."""
        self._descriptors.clear()


__all__ = ["ConsumerRegistry"]
