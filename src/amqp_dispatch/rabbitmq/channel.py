"""RabbitMQChannel — IDeliveryChannel on top of an aio-pika channel."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import aio_pika
from aio_pika.exceptions import AMQPError

from ..envelope import DeliveryEnvelope, MessageProperties
from ..exceptions import DeliverySettlementError, MessagingConnectionError

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    from aio_pika.abc import AbstractExchange, AbstractIncomingMessage, AbstractQueue

    from .connection import RabbitMQConnectionManager

logger = logging.getLogger("amqp_dispatch.rabbitmq")

# Connection generation of the delivery being handled in the current task.
_delivery_generation: ContextVar[int | None] = ContextVar(
    "delivery_generation", default=None
)


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def envelope_from_message(message: AbstractIncomingMessage) -> DeliveryEnvelope:
    """Build a DeliveryEnvelope from an aio-pika incoming message."""
    props = message.properties
    delivery_mode = getattr(props, "delivery_mode", None)
    properties = MessageProperties(
        content_type=_opt_str(getattr(props, "content_type", None)),
        content_encoding=_opt_str(getattr(props, "content_encoding", None)),
        headers=dict(getattr(props, "headers", None) or {}),
        delivery_mode=int(delivery_mode) if delivery_mode is not None else None,
        priority=getattr(props, "priority", None),
        correlation_id=_opt_str(getattr(props, "correlation_id", None)),
        reply_to=_opt_str(getattr(props, "reply_to", None)),
        expiration=_opt_str(getattr(props, "expiration", None)),
        message_id=_opt_str(getattr(props, "message_id", None)),
        timestamp=getattr(props, "timestamp", None),
        type=_opt_str(getattr(props, "message_type", None)),
        user_id=_opt_str(getattr(props, "user_id", None)),
        app_id=_opt_str(getattr(props, "app_id", None)),
    )
    return DeliveryEnvelope(
        body=message.body,
        delivery_tag=message.delivery_tag or 0,
        exchange=message.exchange or "",
        routing_key=message.routing_key or "",
        consumer_tag=message.consumer_tag,
        redelivered=bool(message.redelivered),
        properties=properties,
    )


class RabbitMQChannel:
    """aio-pika adapter implementing IDeliveryChannel.

    Consumes existing queues (topology is declared elsewhere). Unsettled
    deliveries are tracked by connection generation and delivery tag so
    ``ack``/``nack`` settle exactly the delivery handled by the calling task;
    auto-ack deliveries are never tracked.

    A reconnect starts a new generation. Deliveries of the previous one can no
    longer be settled and are redelivered by the broker, so settling them
    raises ``DeliverySettlementError``.
    """

    def __init__(self, connection: RabbitMQConnectionManager) -> None:
        self._connection = connection
        self._generation = 0
        self._pending: dict[tuple[int, int], AbstractIncomingMessage] = {}
        self._exchanges: dict[str, AbstractExchange] = {}
        self._queues: dict[str, AbstractQueue] = {}
        connection.add_reconnect_listener(self._on_reconnect)

    def _on_reconnect(self) -> None:
        dropped = len(self._pending)
        self._generation += 1
        self._pending.clear()
        if dropped:
            logger.warning(
                "Dropped %d unsettled delivery(ies) from the previous connection",
                dropped,
            )

    async def subscribe(
        self,
        queue_name: str,
        on_receive: Callable[[DeliveryEnvelope], Coroutine[Any, Any, None]],
        *,
        auto_ack: bool = False,
    ) -> str:
        """Consume *queue_name*; returns the broker consumer tag."""
        await self._connection.connect()
        channel = self._connection.channel

        async def on_message(message: AbstractIncomingMessage) -> None:
            try:
                envelope = envelope_from_message(message)
            except ValueError:
                logger.exception(
                    "Dropping undecodable delivery %s from %s",
                    message.delivery_tag,
                    queue_name,
                )
                if not auto_ack:
                    await message.reject(requeue=False)
                return
            key = (self._generation, envelope.delivery_tag)
            if not auto_ack:
                self._pending[key] = message
            token = _delivery_generation.set(key[0])
            try:
                await on_receive(envelope)
            finally:
                _delivery_generation.reset(token)
                if self._pending.get(key) is message:
                    del self._pending[key]

        try:
            queue = await channel.get_queue(queue_name, ensure=True)
            consumer_tag = str(await queue.consume(on_message, no_ack=auto_ack))
        except AMQPError as e:
            raise MessagingConnectionError(str(e)) from e
        self._queues[consumer_tag] = queue
        logger.info(
            "Consuming %s (consumer_tag=%s, auto_ack=%s)",
            queue_name,
            consumer_tag,
            auto_ack,
        )
        return consumer_tag

    async def cancel(self, consumer_tag: str) -> None:
        """Stop the subscription *consumer_tag*; unknown tags are ignored."""
        queue = self._queues.pop(consumer_tag, None)
        if queue is None:
            return
        try:
            await queue.cancel(consumer_tag)
        except AMQPError as e:
            raise MessagingConnectionError(str(e)) from e
        logger.info("Cancelled consumer %s", consumer_tag)

    async def close(self) -> None:
        """Cancel every subscription made through this channel."""
        for consumer_tag in list(self._queues):
            await self.cancel(consumer_tag)

    def _take(self, delivery_tag: int) -> AbstractIncomingMessage:
        generation = _delivery_generation.get()
        if generation is None:
            generation = self._generation
        message = self._pending.pop((generation, delivery_tag), None)
        if message is None:
            raise DeliverySettlementError(delivery_tag)
        return message

    async def ack(self, delivery_tag: int, *, multiple: bool = False) -> None:
        message = self._take(delivery_tag)
        await message.ack(multiple=multiple)

    async def nack(
        self,
        delivery_tag: int,
        *,
        multiple: bool = False,
        requeue: bool = True,
    ) -> None:
        message = self._take(delivery_tag)
        await message.nack(multiple=multiple, requeue=requeue)

    async def _exchange(self, name: str) -> AbstractExchange:
        channel = self._connection.channel
        if not name:
            return channel.default_exchange
        if name not in self._exchanges:
            self._exchanges[name] = await channel.get_exchange(name, ensure=False)
        return self._exchanges[name]

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        *,
        properties: dict[str, Any] | None = None,
    ) -> None:
        """Publish *body*; *properties* are passed to ``aio_pika.Message``."""
        await self._connection.connect()
        target = await self._exchange(exchange)
        try:
            await target.publish(
                aio_pika.Message(body=body, **(properties or {})),
                routing_key=routing_key,
            )
        except AMQPError as e:
            raise MessagingConnectionError(str(e)) from e

    async def health_check(self) -> bool:
        """Return True if the connection is healthy."""
        return await self._connection.health_check()
