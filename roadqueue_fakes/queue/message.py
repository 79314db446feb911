"""RoadQueue Fakes Message - Core Message Types.

This module defines the records that travel through the in-memory broker:
the published envelope, the property container attached to it, and the
shapes handed back to callers on delivery, get and return.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass
class BasicProperties:
    """Message properties.

    The broker passes properties through untouched. Only ``headers`` is
    ever read, by headers exchanges when matching bindings.

    Attributes:
        content_type: MIME type of message body
        content_encoding: Encoding of message body
        headers: Application headers
        delivery_mode: 1 = transient, 2 = persistent
        priority: Message priority
        correlation_id: ID for correlating request/response
        reply_to: Queue name for responses
        expiration: Message TTL as a string of milliseconds
        message_id: Application message identifier
        timestamp: Message timestamp
        type: Message type name
        user_id: Publishing user
        app_id: Publishing application
        cluster_id: Cluster identifier
    """

    content_type: Optional[str] = None
    content_encoding: Optional[str] = None
    headers: Optional[Dict[str, Any]] = None
    delivery_mode: Optional[int] = None
    priority: Optional[int] = None
    correlation_id: Optional[str] = None
    reply_to: Optional[str] = None
    expiration: Optional[str] = None
    message_id: Optional[str] = None
    timestamp: Optional[int] = None
    type: Optional[str] = None
    user_id: Optional[str] = None
    app_id: Optional[str] = None
    cluster_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the properties that are set to a dictionary."""
        return {
            key: value
            for key, value in self.__dict__.items()
            if value is not None
        }


def extract_headers(properties: Any) -> Mapping[str, Any]:
    """Read the header table out of an opaque properties value.

    Accepts a ``BasicProperties``, any object exposing ``headers``, or a
    plain mapping with a ``"headers"`` entry.
    """
    if properties is None:
        return {}
    if isinstance(properties, Mapping):
        headers = properties.get("headers")
    else:
        headers = getattr(properties, "headers", None)
    return headers or {}


@dataclass(frozen=True, eq=False)
class MessageEnvelope:
    """One published message.

    Immutable once published. When an exchange routes to several queues,
    each queue receives its own copy carrying that queue's name, which is
    how acknowledgements find their way back. Envelopes compare by
    identity, so two identical publishes stay distinguishable.

    Attributes:
        exchange: Exchange the message was published to
        routing_key: Routing key supplied by the publisher
        body: Message payload
        properties: Opaque property container
        mandatory: Report back if no queue receives the message
        queue: Owning queue, set once enqueued
        redelivered: True once the message has been put back on a queue
    """

    exchange: str
    routing_key: str
    body: bytes = b""
    properties: Any = None
    mandatory: bool = False
    queue: Optional[str] = None
    redelivered: bool = False

    @property
    def headers(self) -> Mapping[str, Any]:
        """Get the application headers from the properties."""
        return extract_headers(self.properties)

    def for_queue(self, queue_name: str) -> "MessageEnvelope":
        """Create the copy that will live in ``queue_name``."""
        return replace(self, queue=queue_name)

    def as_redelivered(self) -> "MessageEnvelope":
        """Create the copy that goes back on the owning queue."""
        return replace(self, redelivered=True)


@dataclass(frozen=True)
class Delivery:
    """A message pushed to a consumer."""

    consumer_tag: str
    delivery_tag: int
    redelivered: bool
    exchange: str
    routing_key: str
    properties: Any
    body: bytes


@dataclass(frozen=True)
class GetResult:
    """A message pulled with ``Channel.get``.

    Attributes:
        delivery_tag: Tag used to acknowledge the message
        redelivered: Whether the message was requeued before
        exchange: Exchange the message was published to
        routing_key: Routing key of the message
        message_count: Messages still pending in the queue
        properties: Message properties
        body: Message payload
    """

    delivery_tag: int
    redelivered: bool
    exchange: str
    routing_key: str
    message_count: int
    properties: Any
    body: bytes


@dataclass(frozen=True)
class ReturnedMessage:
    """A mandatory message that matched no binding."""

    reply_code: int
    reply_text: str
    exchange: str
    routing_key: str
    properties: Any
    body: bytes

    @classmethod
    def no_route(cls, envelope: MessageEnvelope) -> "ReturnedMessage":
        """Build the return for an unroutable envelope."""
        return cls(
            reply_code=312,
            reply_text="NO_ROUTE",
            exchange=envelope.exchange,
            routing_key=envelope.routing_key,
            properties=envelope.properties,
            body=envelope.body,
        )


__all__ = [
    "BasicProperties",
    "MessageEnvelope",
    "Delivery",
    "GetResult",
    "ReturnedMessage",
    "extract_headers",
]
