"""ConsumerDispatcher — drive one handler method from one queue subscription."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .binding import ParameterBinder
from .codec import BodyCodec
from .correlation import delivery_context
from .descriptor import AcknowledgementMode

if TYPE_CHECKING:
    from .descriptor import ConsumerDescriptor, PublisherConfig
    from .envelope import DeliveryEnvelope
    from .ports import IDeliveryChannel, IScopeFactory, IServiceScope

logger = logging.getLogger("amqp_dispatch.dispatcher")


@dataclass(frozen=True)
class InvocationResult:
    """Outcome of resolving, binding and invoking a handler for one delivery.

    ``caused_by_handler`` only changes how the failure is logged; every
    failure is settled the same way.
    """

    value: Any = None
    error: Exception | None = None
    caused_by_handler: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def success(cls, value: Any) -> InvocationResult:
        return cls(value=value)

    @classmethod
    def failure(
        cls, error: Exception, *, caused_by_handler: bool = False
    ) -> InvocationResult:
        return cls(error=error, caused_by_handler=caused_by_handler)


class ConsumerDispatcher:
    """Subscribe a consumer method to its queue and dispatch each delivery.

    Per delivery, in order:

    1. open a service scope and resolve the handler instance;
    2. bind the arguments and invoke the handler;
    3. ``ACK_ON_INVOKE``: acknowledge;
    4. publisher configured: publish the encoded return value;
    5. ``ACK_ON_PUBLISH``: acknowledge;
    6. release the scope.

    Any failure nacks the delivery with the configured requeue flag and skips
    the remaining steps. At most one ack or nack is issued per delivery and
    none in ``AUTO_ACK`` mode. Nothing raised while handling a delivery
    propagates back to the transport.

    The dispatcher keeps no per-delivery state, so the transport may run
    several deliveries concurrently.

    Usage::

        descriptor = ConsumerDescriptor.from_method(OrderConsumer, "handle")
        dispatcher = await ConsumerDispatcher.create(
            descriptor, channel, FactoryScopeFactory()
        )
    """

    def __init__(
        self,
        descriptor: ConsumerDescriptor,
        channel: IDeliveryChannel,
        scope_factory: IScopeFactory,
        *,
        codec: BodyCodec | None = None,
        binder: ParameterBinder | None = None,
    ) -> None:
        """Configure the dispatcher; call ``start()`` to subscribe.

        Args:
            descriptor: Handler method and its consumer/publisher configuration.
            channel: Shared channel used to consume, ack/nack and publish.
            scope_factory: Creates the service scope of each delivery.
            codec: Body codec for ``FromBody`` arguments and published results.
            binder: Parameter binder; defaults to one using *codec*.
        """
        self._descriptor = descriptor
        self._channel = channel
        self._scope_factory = scope_factory
        self._codec = codec or BodyCodec()
        self._binder = binder or ParameterBinder(self._codec)
        self._consumer_tag: str | None = None

    @classmethod
    async def create(
        cls,
        descriptor: ConsumerDescriptor,
        channel: IDeliveryChannel,
        scope_factory: IScopeFactory,
        **kwargs: Any,
    ) -> ConsumerDispatcher:
        """Construct a dispatcher and subscribe it in one step."""
        dispatcher = cls(descriptor, channel, scope_factory, **kwargs)
        await dispatcher.start()
        return dispatcher

    @property
    def descriptor(self) -> ConsumerDescriptor:
        return self._descriptor

    @property
    def consumer_tag(self) -> str | None:
        return self._consumer_tag

    async def start(self) -> str:
        """Subscribe to the descriptor's queue. Idempotent."""
        if self._consumer_tag is not None:
            return self._consumer_tag
        descriptor = self._descriptor
        logger.info(
            "Registering method %s as consumer%s.",
            descriptor.qualified_name,
            " and publisher" if descriptor.is_publisher else "",
        )
        self._consumer_tag = await self._channel.subscribe(
            descriptor.consumer.queue_name,
            self.dispatch,
            auto_ack=descriptor.ack_mode is AcknowledgementMode.AUTO_ACK,
        )
        return self._consumer_tag

    async def stop(self) -> None:
        """Cancel the subscription. Deliveries already in flight complete."""
        consumer_tag, self._consumer_tag = self._consumer_tag, None
        if consumer_tag is None:
            return
        logger.info(
            "Cancelling consumer %s of %s.",
            consumer_tag,
            self._descriptor.qualified_name,
        )
        await self._channel.cancel(consumer_tag)

    async def dispatch(self, envelope: DeliveryEnvelope) -> None:
        """Handle one delivery. Never raises."""
        descriptor = self._descriptor
        tag = envelope.delivery_tag
        ack_mode = descriptor.ack_mode
        settled = ack_mode is AcknowledgementMode.AUTO_ACK
        acknowledged = settled
        failure: InvocationResult | None = None

        logger.info(
            "Received message %s from %s with %s. Invoking %s.",
            tag,
            envelope.exchange or "<default>",
            envelope.routing_key,
            descriptor.qualified_name,
        )
        with delivery_context(envelope):
            try:
                async with self._scope_factory.create_scope() as scope:
                    result = await self._invoke(scope, envelope)
                    if result.failed:
                        failure = result
                    else:
                        if ack_mode is AcknowledgementMode.ACK_ON_INVOKE:
                            logger.info(
                                "Acknowledging message %s after invocation.", tag
                            )
                            settled = True
                            await self._channel.ack(tag, multiple=False)
                            acknowledged = True

                        if descriptor.publisher is not None:
                            await self._publish(
                                descriptor.publisher, envelope, result.value
                            )

                        if ack_mode is AcknowledgementMode.ACK_ON_PUBLISH:
                            logger.info("Acknowledging message %s after publish.", tag)
                            settled = True
                            await self._channel.ack(tag, multiple=False)
                            acknowledged = True
            except Exception as e:  # noqa: BLE001
                failure = InvocationResult.failure(e)

            if failure is not None:
                self._log_failure(
                    envelope, failure, settled=settled, acknowledged=acknowledged
                )
                if not settled:
                    await self._reject(tag)

    async def _invoke(
        self, scope: IServiceScope, envelope: DeliveryEnvelope
    ) -> InvocationResult:
        descriptor = self._descriptor
        try:
            instance = scope.resolve(descriptor.handler_type)
            method = getattr(instance, descriptor.method_name)
            args = self._binder.resolve(descriptor, envelope, self._channel)
        except Exception as e:  # noqa: BLE001
            return InvocationResult.failure(e)

        try:
            value = method(*args)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:  # noqa: BLE001
            return InvocationResult.failure(e, caused_by_handler=True)
        return InvocationResult.success(value)

    async def _publish(
        self,
        publisher: PublisherConfig,
        envelope: DeliveryEnvelope,
        value: Any,
    ) -> None:
        logger.info(
            "Publishing result of %s from %s to %s with %s",
            envelope.delivery_tag,
            self._descriptor.qualified_name,
            publisher.exchange or "<default>",
            publisher.routing_key,
        )
        body = self._codec.encode(value)
        await self._channel.publish(publisher.exchange, publisher.routing_key, body)

    async def _reject(self, delivery_tag: int) -> None:
        try:
            await self._channel.nack(
                delivery_tag,
                multiple=False,
                requeue=self._descriptor.consumer.requeue_on_failure,
            )
        except Exception:
            logger.exception("Failed to nack message %s", delivery_tag)

    def _log_failure(
        self,
        envelope: DeliveryEnvelope,
        failure: InvocationResult,
        *,
        settled: bool,
        acknowledged: bool,
    ) -> None:
        tag = envelope.delivery_tag
        if not settled:
            outcome = "will nack"
        elif self._descriptor.ack_mode is AcknowledgementMode.AUTO_ACK:
            outcome = "already acknowledged by the broker"
        elif acknowledged:
            outcome = "already acknowledged, it will not be redelivered"
        else:
            outcome = "acknowledging it failed, it is left unsettled"
        if failure.caused_by_handler:
            logger.error(
                "Message %s threw exception when %s was invoked, %s.",
                tag,
                self._descriptor.qualified_name,
                outcome,
                exc_info=failure.error,
            )
        else:
            logger.error(
                "Message %s threw exception, %s.",
                tag,
                outcome,
                exc_info=failure.error,
            )
