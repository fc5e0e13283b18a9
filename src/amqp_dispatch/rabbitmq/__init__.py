"""RabbitMQ transport adapter (optional extra: amqp-dispatch[rabbitmq])."""

from __future__ import annotations

from .channel import RabbitMQChannel, envelope_from_message
from .connection import RabbitMQConnectionManager

__all__ = [
    "RabbitMQChannel",
    "RabbitMQConnectionManager",
    "envelope_from_message",
]
