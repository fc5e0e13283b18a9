"""InMemoryChannel — IDeliveryChannel that records calls, for tests and local runs."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..envelope import DeliveryEnvelope, MessageProperties

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine

    OnReceive = Callable[[DeliveryEnvelope], Coroutine[Any, Any, None]]


@dataclass(frozen=True)
class ChannelCall:
    """One recorded ack, nack or publish call."""

    method: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Subscription:
    queue_name: str
    consumer_tag: str
    on_receive: OnReceive
    auto_ack: bool


class InMemoryChannel:
    """In-memory channel: ``deliver()`` feeds every subscriber of a queue.

    Every ack, nack and publish is recorded in ``calls`` in order; the
    ``acks``, ``nacks`` and ``published`` helpers filter it for assertions.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._tags = itertools.count(1)
        self._consumer_ids = itertools.count(1)
        self.calls: list[ChannelCall] = []

    async def subscribe(
        self,
        queue_name: str,
        on_receive: OnReceive,
        *,
        auto_ack: bool = False,
    ) -> str:
        consumer_tag = f"ctag-{next(self._consumer_ids)}"
        self._subscriptions.append(
            _Subscription(queue_name, consumer_tag, on_receive, auto_ack)
        )
        return consumer_tag

    async def cancel(self, consumer_tag: str) -> None:
        self._subscriptions = [
            s for s in self._subscriptions if s.consumer_tag != consumer_tag
        ]

    async def ack(self, delivery_tag: int, *, multiple: bool = False) -> None:
        self.calls.append(
            ChannelCall("ack", {"delivery_tag": delivery_tag, "multiple": multiple})
        )

    async def nack(
        self,
        delivery_tag: int,
        *,
        multiple: bool = False,
        requeue: bool = True,
    ) -> None:
        self.calls.append(
            ChannelCall(
                "nack",
                {
                    "delivery_tag": delivery_tag,
                    "multiple": multiple,
                    "requeue": requeue,
                },
            )
        )

    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        *,
        properties: dict[str, Any] | None = None,
    ) -> None:
        self.calls.append(
            ChannelCall(
                "publish",
                {
                    "exchange": exchange,
                    "routing_key": routing_key,
                    "body": body,
                    "properties": properties,
                },
            )
        )

    async def deliver(
        self,
        queue_name: str,
        body: bytes = b"",
        *,
        exchange: str = "",
        routing_key: str | None = None,
        redelivered: bool = False,
        properties: MessageProperties | None = None,
    ) -> list[DeliveryEnvelope]:
        """Deliver one message to each subscriber of *queue_name*.

        Each subscriber receives its own envelope with a fresh delivery tag.
        Returns the envelopes in subscription order.
        """
        envelopes: list[DeliveryEnvelope] = []
        for sub in self.subscriptions(queue_name):
            envelope = DeliveryEnvelope(
                body=body,
                delivery_tag=next(self._tags),
                exchange=exchange,
                routing_key=queue_name if routing_key is None else routing_key,
                consumer_tag=sub.consumer_tag,
                redelivered=redelivered,
                properties=properties or MessageProperties(),
            )
            envelopes.append(envelope)
            await sub.on_receive(envelope)
        return envelopes

    def subscriptions(self, queue_name: str | None = None) -> list[_Subscription]:
        return [
            s
            for s in self._subscriptions
            if queue_name is None or s.queue_name == queue_name
        ]

    # ── Assertion helpers ────────────────────────────────────────

    @property
    def acks(self) -> list[ChannelCall]:
        return [c for c in self.calls if c.method == "ack"]

    @property
    def nacks(self) -> list[ChannelCall]:
        return [c for c in self.calls if c.method == "nack"]

    @property
    def published(self) -> list[ChannelCall]:
        return [c for c in self.calls if c.method == "publish"]

    def clear(self) -> None:
        """Clear recorded calls and subscriptions (for test teardown)."""
        self.calls.clear()
        self._subscriptions.clear()
