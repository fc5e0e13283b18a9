"""ConsumerHost — start one dispatcher per registered consumer descriptor."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .dispatcher import ConsumerDispatcher

if TYPE_CHECKING:
    from .codec import BodyCodec
    from .ports import IDeliveryChannel, IScopeFactory
    from .registry import ConsumerRegistry

logger = logging.getLogger("amqp_dispatch.host")


class ConsumerHost:
    """Owns the dispatchers of every descriptor in a ``ConsumerRegistry``.

    Usage::

        registry = ConsumerRegistry()
        registry.register_class(OrderConsumer)

        host = ConsumerHost(registry, channel, FactoryScopeFactory())
        await host.start()
    """

    def __init__(
        self,
        registry: ConsumerRegistry,
        channel: IDeliveryChannel,
        scope_factory: IScopeFactory,
        *,
        codec: BodyCodec | None = None,
    ) -> None:
        self._registry = registry
        self._channel = channel
        self._scope_factory = scope_factory
        self._codec = codec
        self._dispatchers: list[ConsumerDispatcher] = []
        self._running = False

    @property
    def dispatchers(self) -> list[ConsumerDispatcher]:
        return list(self._dispatchers)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Subscribe every registered consumer. Idempotent."""
        if self._running:
            return
        self._running = True
        descriptors = self._registry.descriptors()
        logger.info("Starting ConsumerHost with %d consumer(s)", len(descriptors))
        for descriptor in descriptors:
            dispatcher = await ConsumerDispatcher.create(
                descriptor,
                self._channel,
                self._scope_factory,
                codec=self._codec,
            )
            self._dispatchers.append(dispatcher)
        logger.info("ConsumerHost started")

    async def stop(self) -> None:
        """Cancel every subscription and drop the dispatchers."""
        if not self._running:
            return
        self._running = False
        dispatchers, self._dispatchers = self._dispatchers, []
        for dispatcher in dispatchers:
            await dispatcher.stop()
        logger.info("ConsumerHost stopped")
