"""DeliveryEnvelope — immutable view of one message received from the broker."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageProperties(BaseModel):
    """Broker-supplied content metadata of a delivery (AMQP basic properties)."""

    model_config = ConfigDict(frozen=True)

    content_type: str | None = None
    content_encoding: str | None = None
    headers: dict[str, Any] = Field(default_factory=dict)
    delivery_mode: int | None = None
    priority: int | None = None
    correlation_id: str | None = None
    reply_to: str | None = None
    expiration: str | None = None
    message_id: str | None = None
    timestamp: datetime | None = None
    type: str | None = None
    user_id: str | None = None
    app_id: str | None = None


class DeliveryEnvelope(BaseModel):
    """One received message: body, routing metadata and delivery tag.

    Created by the transport adapter on receipt and valid for a single
    dispatch. The dispatcher never mutates it.
    """

    model_config = ConfigDict(frozen=True)

    body: bytes = b""
    delivery_tag: int = Field(..., ge=0, description="Channel-scoped delivery id")
    exchange: str = ""
    routing_key: str = ""
    consumer_tag: str | None = None
    redelivered: bool = False
    properties: MessageProperties = Field(default_factory=MessageProperties)
