"""RoadQueue Fakes Channel - Caller-Facing Session.

A channel declares topology, publishes into the routing graph, registers
consumers and runs the acknowledgement protocol over its own table of
in-flight messages. Several channels share one ``BrokerState``; delivery
tags and the in-flight table belong to a single channel.

Delivery model:
- Pull (``get``) and push deliveries leave the message pending in its
  queue; ``ack`` is what finally removes it.
- ``get`` with ``auto_ack`` pops the message and never tracks it.
- ``recover``/``nack`` put messages back at the tail of their queue,
  which redelivers them to attached consumers under fresh tags.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Union

from roadqueue_fakes.broker.broker import BrokerState
from roadqueue_fakes.broker.exchange import Exchange, ExchangeType
from roadqueue_fakes.channel.consumer import CallbackConsumer, Consumer
from roadqueue_fakes.errors import AlreadyClosedError, NotFoundError
from roadqueue_fakes.queue.base import Queue, QueueState
from roadqueue_fakes.queue.message import (
    BasicProperties,
    Delivery,
    GetResult,
    MessageEnvelope,
    ReturnedMessage,
)

logger = logging.getLogger(__name__)

REPLY_SUCCESS = 200


@dataclass(frozen=True)
class ShutdownReason:
    """Why a channel or connection was closed."""

    initiator: str
    reply_code: int
    reply_text: str

    def __str__(self) -> str:
        return f"{self.initiator}: {self.reply_code} {self.reply_text}"


@dataclass(frozen=True)
class QueueDeclareOk:
    """Result of ``Channel.declare_queue``."""

    queue: str
    message_count: int
    consumer_count: int


@dataclass
class _Subscription:
    """A consumer registered on this channel."""

    consumer_tag: str
    queue: Queue
    consumer: Consumer
    auto_ack: bool
    listener_id: str
    active: bool = True
    # Set until the backlog has been handed over
    draining: bool = True
    held: Deque[MessageEnvelope] = field(default_factory=deque)

    @property
    def is_stale(self) -> bool:
        return self.queue.state is QueueState.DELETED


def _as_bytes(body: Any) -> bytes:
    if isinstance(body, str):
        return body.encode("utf-8")
    if body is None:
        return b""
    return bytes(body)


def _properties_or_default(envelope: MessageEnvelope) -> Any:
    if envelope.properties is None:
        return BasicProperties()
    return envelope.properties


class Channel:
    """Session over a shared broker state.

    Not meant to be driven by several callers at once, but deliveries can
    arrive on whatever thread publishes, so channel-local tables are locked.
    """

    def __init__(
        self,
        state: BrokerState,
        channel_number: int = 1,
    ):
        """Initialize channel.

        Args:
            state: Broker state shared with other channels
            channel_number: Number assigned by the owning connection
        """
        self.state = state
        self.channel_number = channel_number
        self.next_publish_seq_no = 1
        self.prefetch_size = 0
        self.prefetch_count = 0

        self._id = uuid.uuid4().hex
        self._lock = threading.RLock()
        self._last_delivery_tag = 0
        self._unacked: "OrderedDict[int, MessageEnvelope]" = OrderedDict()
        self._consumers: Dict[str, _Subscription] = {}
        self._return_callbacks: List[Callable[[ReturnedMessage], None]] = []
        self._close_callbacks: List[Callable[["Channel", ShutdownReason], None]] = []
        self._close_reason: Optional[ShutdownReason] = None

    # Lifecycle

    @property
    def is_open(self) -> bool:
        return self._close_reason is None

    @property
    def is_closed(self) -> bool:
        return not self.is_open

    @property
    def close_reason(self) -> Optional[ShutdownReason]:
        return self._close_reason

    def add_on_close_callback(
        self,
        callback: Callable[["Channel", ShutdownReason], None],
    ) -> None:
        """Register a callback invoked once when the channel closes."""
        self._close_callbacks.append(callback)

    def add_on_return_callback(
        self,
        callback: Callable[[ReturnedMessage], None],
    ) -> None:
        """Register a callback for unroutable mandatory publishes."""
        self._return_callbacks.append(callback)

    def close(self, reply_code: int = REPLY_SUCCESS, reply_text: str = "Goodbye") -> None:
        """Close the channel.

        Raises:
            AlreadyClosedError: If the channel is already closed
        """
        self._close(reply_code, reply_text, abort=False)

    def abort(self, reply_code: int = REPLY_SUCCESS, reply_text: str = "Goodbye") -> None:
        """Close the channel, never raising."""
        self._close(reply_code, reply_text, abort=True)

    def _close(self, reply_code: int, reply_text: str, abort: bool) -> None:
        reason = ShutdownReason("application", reply_code, reply_text)

        with self._lock:
            if self.is_closed:
                if abort:
                    return
                raise AlreadyClosedError(self._close_reason)
            self._close_reason = reason
            subscriptions = list(self._consumers.values())
            self._consumers.clear()

        for subscription in subscriptions:
            subscription.active = False
            subscription.queue.unsubscribe(subscription.listener_id)

        logger.info(f"Channel {self.channel_number} closed ({reason})")

        for subscription in subscriptions:
            self._notify(subscription.consumer.handle_shutdown, reason, abort=abort)
        for callback in self._close_callbacks:
            self._notify(callback, self, reason, abort=abort)

    def _notify(self, callback: Callable[..., None], *args: Any, abort: bool) -> None:
        if not abort:
            callback(*args)
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Shutdown callback failed during abort: {e}")

    def _ensure_open(self) -> None:
        if self.is_closed:
            raise AlreadyClosedError(self._close_reason)

    def __enter__(self) -> "Channel":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # Abort rather than close so leaving the block never raises
        self.abort()

    # Topology

    def create_basic_properties(self) -> BasicProperties:
        """Create an empty property container."""
        return BasicProperties()

    def declare_exchange(
        self,
        exchange: str,
        exchange_type: Union[ExchangeType, str] = ExchangeType.DIRECT,
        durable: bool = False,
        auto_delete: bool = False,
        arguments: Optional[Dict[str, Any]] = None,
        passive: bool = False,
    ) -> Exchange:
        """Declare an exchange.

        Redeclaring an existing name returns it unchanged.

        Raises:
            NotFoundError: If ``passive`` and the exchange does not exist
        """
        self._ensure_open()
        if passive:
            existing = self.state.get_exchange(exchange)
            if existing is None:
                raise NotFoundError("exchange", exchange)
            return existing

        return self.state.declare_exchange(
            exchange,
            exchange_type,
            durable=durable,
            auto_delete=auto_delete,
            arguments=arguments,
        )

    def delete_exchange(self, exchange: str) -> bool:
        self._ensure_open()
        return self.state.delete_exchange(exchange)

    def declare_queue(
        self,
        queue: str = "",
        durable: bool = False,
        exclusive: bool = False,
        auto_delete: bool = False,
        arguments: Optional[Dict[str, Any]] = None,
        passive: bool = False,
    ) -> QueueDeclareOk:
        """Declare a queue.

        An empty name declares a queue under a freshly generated name.

        Raises:
            NotFoundError: If ``passive`` and the queue does not exist
        """
        self._ensure_open()
        if passive:
            instance = self.state.get_queue(queue)
            if instance is None:
                raise NotFoundError("queue", queue)
        else:
            instance = self.state.declare_queue(
                queue or f"amq.gen-{uuid.uuid4()}",
                durable=durable,
                exclusive=exclusive,
                auto_delete=auto_delete,
                arguments=arguments,
            )

        return QueueDeclareOk(
            queue=instance.name,
            message_count=len(instance),
            consumer_count=instance.consumer_count,
        )

    def delete_queue(self, queue: str) -> bool:
        self._ensure_open()
        return self.state.delete_queue(queue)

    def purge_queue(self, queue: str) -> int:
        """Drop pending messages; in-flight copies are untouched."""
        self._ensure_open()
        return self.state.purge_queue(queue)

    def bind_queue(
        self,
        queue: str,
        exchange: str,
        routing_key: Optional[str] = None,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Bind a queue to an exchange.

        Returns:
            False if either end does not exist
        """
        self._ensure_open()
        binding = self.state.bind(exchange, queue, routing_key or "", arguments)
        return binding is not None

    def unbind_queue(
        self,
        queue: str,
        exchange: str,
        routing_key: Optional[str] = None,
    ) -> bool:
        self._ensure_open()
        return self.state.unbind(exchange, queue, routing_key or "")

    def message_count(self, queue: str) -> int:
        self._ensure_open()
        instance = self.state.get_queue(queue)
        return len(instance) if instance is not None else 0

    def consumer_count(self, queue: str) -> int:
        self._ensure_open()
        instance = self.state.get_queue(queue)
        return instance.consumer_count if instance is not None else 0

    def qos(
        self,
        prefetch_size: int = 0,
        prefetch_count: int = 0,
        global_qos: bool = False,
    ) -> None:
        """Record prefetch settings; deliveries are never throttled."""
        self._ensure_open()
        self.prefetch_size = prefetch_size
        self.prefetch_count = prefetch_count

    # Publishing

    def publish(
        self,
        exchange: str,
        routing_key: Optional[str],
        body: Union[bytes, bytearray, memoryview, str],
        properties: Any = None,
        mandatory: bool = False,
    ) -> bool:
        """Publish a message.

        Args:
            exchange: Exchange name, created as direct if unknown
            routing_key: Routing key
            body: Message payload
            properties: Opaque property container
            mandatory: Report the message back if no queue receives it

        Returns:
            True if at least one queue received a copy
        """
        self._ensure_open()
        envelope = MessageEnvelope(
            exchange=exchange or "",
            routing_key=routing_key or "",
            body=_as_bytes(body),
            properties=properties,
            mandatory=mandatory,
        )

        delivered = self.state.publish(envelope)
        with self._lock:
            self.next_publish_seq_no += 1

        if not delivered and mandatory:
            logger.warning(
                f"Unroutable mandatory message on {envelope.exchange!r} "
                f"with key {envelope.routing_key!r}"
            )
            returned = ReturnedMessage.no_route(envelope)
            for callback in list(self._return_callbacks):
                try:
                    callback(returned)
                except Exception as e:
                    logger.error(f"Return callback failed: {e}")

        return bool(delivered)

    # Consuming

    def consume(
        self,
        queue: str,
        consumer: Union[Consumer, Callable[[Delivery], None]],
        consumer_tag: str = "",
        auto_ack: bool = False,
    ) -> str:
        """Register a push-mode consumer.

        Messages already pending are delivered at once, oldest first;
        later messages are delivered as they are enqueued.

        Args:
            queue: Queue to consume from
            consumer: Consumer instance or delivery callback
            consumer_tag: Tag to register under, generated if empty
            auto_ack: Remove messages on delivery instead of on ack

        Returns:
            The consumer tag
        """
        self._ensure_open()
        if not isinstance(consumer, Consumer):
            consumer = CallbackConsumer(consumer)
        consumer_tag = consumer_tag or f"ctag-{uuid.uuid4().hex}"

        instance = self.state.get_queue(queue)
        if instance is None:
            logger.warning(f"Cannot consume from {queue!r}: queue not found")
            return consumer_tag

        with self._lock:
            existing = self._consumers.get(consumer_tag)
            if existing is not None and not existing.is_stale:
                logger.warning(f"Consumer {consumer_tag} already registered")
                return consumer_tag
            subscription = _Subscription(
                consumer_tag=consumer_tag,
                queue=instance,
                consumer=consumer,
                auto_ack=auto_ack,
                listener_id=f"{self._id}:{consumer_tag}",
            )
            self._consumers[consumer_tag] = subscription

        if existing is not None:
            # Its queue was deleted under it
            existing.active = False
            existing.consumer.handle_cancel_ok(consumer_tag)
            logger.info(f"Replaced consumer {consumer_tag} on deleted queue {queue}")

        consumer.handle_consume_ok(consumer_tag)
        logger.info(f"Consumer {consumer_tag} registered on queue {queue}")

        pending = instance.subscribe(
            subscription.listener_id,
            lambda envelope: self._on_enqueue(subscription, envelope),
        )
        for envelope in pending:
            self._deliver(subscription, envelope)
        self._drain(subscription)

        return consumer_tag

    def _on_enqueue(self, subscription: _Subscription, envelope: MessageEnvelope) -> None:
        with self._lock:
            if subscription.draining:
                subscription.held.append(envelope)
                return
        self._deliver(subscription, envelope)

    def _drain(self, subscription: _Subscription) -> None:
        """Deliver messages enqueued while the backlog was being handed over."""
        while True:
            with self._lock:
                if not subscription.held:
                    subscription.draining = False
                    return
                envelope = subscription.held.popleft()
            self._deliver(subscription, envelope)

    def cancel(self, consumer_tag: str) -> bool:
        """Cancel a consumer; messages already delivered stay in flight.

        Returns:
            True if the consumer was registered
        """
        self._ensure_open()
        with self._lock:
            subscription = self._consumers.pop(consumer_tag, None)
        if subscription is None:
            return False

        subscription.active = False
        subscription.queue.unsubscribe(subscription.listener_id)

        subscription.consumer.handle_cancel_ok(consumer_tag)
        logger.info(f"Consumer {consumer_tag} cancelled")
        return True

    def _deliver(self, subscription: _Subscription, envelope: MessageEnvelope) -> None:
        if not subscription.active or self.is_closed:
            return

        with self._lock:
            delivery_tag = self._next_delivery_tag()
            if not subscription.auto_ack:
                self._unacked[delivery_tag] = envelope

        if subscription.auto_ack:
            self._remove_from_queue(envelope)

        delivery = Delivery(
            consumer_tag=subscription.consumer_tag,
            delivery_tag=delivery_tag,
            redelivered=envelope.redelivered,
            exchange=envelope.exchange,
            routing_key=envelope.routing_key,
            properties=_properties_or_default(envelope),
            body=envelope.body,
        )
        logger.debug(f"Delivering tag {delivery_tag} to {subscription.consumer_tag}")

        try:
            subscription.consumer.handle_deliver(delivery)
        except Exception as e:
            logger.error(f"Consumer {subscription.consumer_tag} callback failed: {e}")

    def get(self, queue: str, auto_ack: bool = False) -> Optional[GetResult]:
        """Pull the head message of a queue.

        Without ``auto_ack`` the message stays in the queue until acked.

        Returns:
            The message, or None if the queue is empty or missing
        """
        self._ensure_open()
        instance = self.state.get_queue(queue)
        if instance is None:
            return None

        envelope = instance.dequeue() if auto_ack else instance.peek()
        if envelope is None:
            return None

        with self._lock:
            delivery_tag = self._next_delivery_tag()
            if not auto_ack:
                self._unacked[delivery_tag] = envelope

        remaining = len(instance) if auto_ack else max(len(instance) - 1, 0)
        return GetResult(
            delivery_tag=delivery_tag,
            redelivered=envelope.redelivered,
            exchange=envelope.exchange,
            routing_key=envelope.routing_key,
            message_count=remaining,
            properties=_properties_or_default(envelope),
            body=envelope.body,
        )

    def _next_delivery_tag(self) -> int:
        with self._lock:
            self._last_delivery_tag += 1
            return self._last_delivery_tag

    # Acknowledgement

    @property
    def unacked(self) -> Dict[int, MessageEnvelope]:
        """Snapshot of the in-flight table."""
        with self._lock:
            return dict(self._unacked)

    def _take(self, delivery_tag: int, multiple: bool) -> List[MessageEnvelope]:
        """Remove the targeted tags from the in-flight table."""
        with self._lock:
            if multiple:
                tags = [tag for tag in self._unacked if tag <= delivery_tag]
            else:
                tags = [delivery_tag] if delivery_tag in self._unacked else []
            return [self._unacked.pop(tag) for tag in tags]

    def _remove_from_queue(self, envelope: MessageEnvelope) -> None:
        instance = self.state.get_queue(envelope.queue)
        if instance is not None:
            instance.remove(envelope)

    def _requeue(self, envelope: MessageEnvelope) -> None:
        instance = self.state.get_queue(envelope.queue)
        if instance is None:
            logger.debug(f"Dropping message for missing queue {envelope.queue}")
            return
        instance.remove(envelope)
        instance.enqueue(envelope.as_redelivered())

    def ack(self, delivery_tag: int, multiple: bool = False) -> None:
        """Acknowledge a delivery, removing the message from its queue.

        Args:
            delivery_tag: Tag to acknowledge
            multiple: Also acknowledge every earlier in-flight tag
        """
        self._ensure_open()
        envelopes = self._take(delivery_tag, multiple)
        if not envelopes:
            logger.debug(f"Ack for unknown delivery tag {delivery_tag}")
        else:
            logger.debug(f"Acked {len(envelopes)} message(s) up to tag {delivery_tag}")
        for envelope in envelopes:
            self._remove_from_queue(envelope)

    def reject(self, delivery_tag: int, requeue: bool = True) -> None:
        self.nack(delivery_tag, multiple=False, requeue=requeue)

    def nack(
        self,
        delivery_tag: int,
        multiple: bool = False,
        requeue: bool = True,
    ) -> None:
        """Negatively acknowledge a delivery.

        With ``requeue`` the targeted messages go back to the tail of their
        queues. Without it the channel empties every queue that owns one of
        its in-flight messages, drops the targeted messages, and puts all
        its other in-flight messages back on their queues.

        Args:
            delivery_tag: Tag to reject
            multiple: Also target every earlier in-flight tag
            requeue: Put the targeted messages back instead of dropping them
        """
        self._ensure_open()

        if requeue:
            for envelope in self._unique(self._take(delivery_tag, multiple)):
                self._requeue(envelope)
            return

        with self._lock:
            owners = list(OrderedDict.fromkeys(
                envelope.queue for envelope in self._unacked.values()
            ))
        for name in owners:
            self.state.purge_queue(name)

        if not self._take(delivery_tag, multiple):
            return

        with self._lock:
            remaining = list(self._unacked.values())
            self._unacked.clear()

        for envelope in self._unique(remaining):
            instance = self.state.get_queue(envelope.queue)
            if instance is not None:
                instance.enqueue(envelope.as_redelivered())

    def recover(self, requeue: bool = True) -> None:
        """Forget every in-flight message, optionally requeueing it.

        Requeued messages move to the tail of their queue.
        """
        self._ensure_open()
        with self._lock:
            envelopes = list(self._unacked.values())
            self._unacked.clear()

        if requeue:
            for envelope in self._unique(envelopes):
                self._requeue(envelope)

    @staticmethod
    def _unique(envelopes: List[MessageEnvelope]) -> List[MessageEnvelope]:
        # An envelope fetched twice sits in the table under two tags
        return list(OrderedDict.fromkeys(envelopes))

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"Channel(number={self.channel_number}, {state}, unacked={len(self._unacked)})"


__all__ = [
    "Channel",
    "QueueDeclareOk",
    "ShutdownReason",
    "REPLY_SUCCESS",
]
