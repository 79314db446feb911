"""RoadQueue Fakes Consumer - Push-Mode Consumers.

Consumers registered with ``Channel.consume`` receive lifecycle and
delivery notifications. ``CallbackConsumer`` adapts a plain function and
``QueueingConsumer`` buffers deliveries for synchronous retrieval.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import queue
from typing import Any, Callable, List, Optional

from roadqueue_fakes.queue.message import Delivery

logger = logging.getLogger(__name__)


class Consumer:
    """Base consumer.

    Subclasses override ``handle_deliver``; the other hooks track the
    consumer tags this consumer is registered under.
    """

    def __init__(self):
        self.consumer_tags: List[str] = []
        self.shutdown_reason: Optional[Any] = None

    @property
    def is_running(self) -> bool:
        return bool(self.consumer_tags)

    def handle_consume_ok(self, consumer_tag: str) -> None:
        """Called once the consumer is registered."""
        self.consumer_tags.append(consumer_tag)

    def handle_deliver(self, delivery: Delivery) -> None:
        """Called for every message delivered to this consumer."""

    def handle_cancel_ok(self, consumer_tag: str) -> None:
        """Called after ``Channel.cancel`` removed the consumer."""
        if consumer_tag in self.consumer_tags:
            self.consumer_tags.remove(consumer_tag)

    def handle_shutdown(self, reason: Any) -> None:
        """Called when the owning channel closes."""
        self.shutdown_reason = reason
        self.consumer_tags.clear()


class CallbackConsumer(Consumer):
    """Consumer that forwards deliveries to a function."""

    def __init__(
        self,
        on_message: Callable[[Delivery], None],
        on_cancel: Optional[Callable[[str], None]] = None,
    ):
        super().__init__()
        self.on_message = on_message
        self.on_cancel = on_cancel

    def handle_deliver(self, delivery: Delivery) -> None:
        self.on_message(delivery)

    def handle_cancel_ok(self, consumer_tag: str) -> None:
        super().handle_cancel_ok(consumer_tag)
        if self.on_cancel is not None:
            self.on_cancel(consumer_tag)


class QueueingConsumer(Consumer):
    """Consumer that buffers deliveries in a thread-safe queue.

    Example:
        consumer = QueueingConsumer()
        channel.consume("jobs", consumer)
        delivery = consumer.get(timeout=5)
        channel.ack(delivery.delivery_tag)
    """

    def __init__(self, maxsize: int = 0):
        super().__init__()
        self.queue: "queue.Queue[Delivery]" = queue.Queue(maxsize=maxsize)

    def handle_deliver(self, delivery: Delivery) -> None:
        self.queue.put(delivery)

    def get(self, timeout: Optional[float] = None) -> Optional[Delivery]:
        """Take the next buffered delivery.

        Args:
            timeout: Seconds to wait; None waits forever, 0 does not wait

        Returns:
            The delivery, or None if nothing arrived in time
        """
        try:
            if timeout == 0:
                return self.queue.get_nowait()
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def __len__(self) -> int:
        return self.queue.qsize()


__all__ = [
    "Consumer",
    "CallbackConsumer",
    "QueueingConsumer",
]
