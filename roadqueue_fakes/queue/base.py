"""RoadQueue Fakes Queue - FIFO Message Store.

A queue holds pending envelopes in publish order, the bindings that
point at it, and the listeners that want to hear about new messages.
Listeners run synchronously inside ``enqueue``, so a consumer that is
already attached receives a message before the publisher's call returns.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Deque,
    Dict,
    List,
    Optional,
    Tuple,
)

from roadqueue_fakes.queue.message import MessageEnvelope

if TYPE_CHECKING:
    from roadqueue_fakes.broker.binding import Binding

logger = logging.getLogger(__name__)

EnqueueListener = Callable[[MessageEnvelope], None]


class QueueState(Enum):
    """Queue lifecycle states."""

    ACTIVE = auto()    # Accepting bindings and messages
    DELETED = auto()   # Removed from the broker, terminal


@dataclass
class QueueConfig:
    """Queue configuration.

    Attributes:
        name: Queue name
        durable: Survive a broker restart (recorded only)
        exclusive: Owned by the declaring connection (recorded only)
        auto_delete: Delete when the last consumer goes (recorded only)
        arguments: Additional arguments
    """

    name: str
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Queue name is required")


@dataclass
class QueueStats:
    """Queue statistics.

    Attributes:
        messages_ready: Messages pending in the FIFO
        consumers: Attached enqueue listeners
        bindings: Bindings pointing at the queue
        messages_published: Messages enqueued since creation
        messages_purged: Messages removed by purge since creation
    """

    messages_ready: int = 0
    consumers: int = 0
    bindings: int = 0
    messages_published: int = 0
    messages_purged: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    last_activity: Optional[datetime] = None


class Queue:
    """FIFO message queue.

    Provides:
    - FIFO ordering of pending envelopes
    - Synchronous enqueue notification
    - Per-queue binding table
    - Identity-based removal for acknowledgements
    """

    def __init__(
        self,
        config: Optional[QueueConfig] = None,
        name: Optional[str] = None,
        binding_lock: Optional[threading.RLock] = None,
    ):
        """Initialize queue.

        Args:
            config: Queue configuration
            name: Queue name (if config not provided)
            binding_lock: Lock guarding binding tables, shared with the
                broker so both sides of a binding change together
        """
        if config:
            self.config = config
        elif name:
            self.config = QueueConfig(name=name)
        else:
            raise ValueError("Either config or name must be provided")

        self._messages: Deque[MessageEnvelope] = deque()
        self._bindings: Dict[Tuple[str, str, str], Binding] = {}
        self._listeners: "OrderedDict[str, EnqueueListener]" = OrderedDict()
        self._lock = threading.RLock()
        self._binding_lock = binding_lock or threading.RLock()
        self._state = QueueState.ACTIVE
        self._stats = QueueStats()

        logger.debug(f"Queue '{self.config.name}' initialized")

    @property
    def name(self) -> str:
        """Get queue name."""
        return self.config.name

    @property
    def state(self) -> QueueState:
        """Get queue state."""
        return self._state

    @property
    def durable(self) -> bool:
        return self.config.durable

    @property
    def exclusive(self) -> bool:
        return self.config.exclusive

    @property
    def auto_delete(self) -> bool:
        return self.config.auto_delete

    @property
    def arguments(self) -> Dict[str, Any]:
        return self.config.arguments

    # Messages

    def enqueue(self, envelope: MessageEnvelope) -> MessageEnvelope:
        """Append a message to the tail and notify listeners.

        Listeners are invoked after the lock is released, in registration
        order, before this method returns.

        Args:
            envelope: Message to append

        Returns:
            The stored envelope, tagged with this queue's name
        """
        if envelope.queue != self.name:
            envelope = envelope.for_queue(self.name)

        with self._lock:
            self._messages.append(envelope)
            self._stats.messages_published += 1
            self._stats.last_activity = datetime.now()
            listeners = list(self._listeners.values())

        logger.debug(
            f"Enqueued message on {self.name} "
            f"(exchange={envelope.exchange!r}, key={envelope.routing_key!r})"
        )

        for listener in listeners:
            listener(envelope)

        return envelope

    def dequeue(self) -> Optional[MessageEnvelope]:
        """Pop the head message, or None if empty."""
        with self._lock:
            if not self._messages:
                return None
            return self._messages.popleft()

    def peek(self) -> Optional[MessageEnvelope]:
        """Read the head message without removing it."""
        with self._lock:
            if not self._messages:
                return None
            return self._messages[0]

    def remove(self, envelope: MessageEnvelope) -> bool:
        """Remove a specific message wherever it sits in the FIFO.

        Returns:
            True if the message was still pending
        """
        with self._lock:
            try:
                self._messages.remove(envelope)
            except ValueError:
                return False
            return True

    def messages(self) -> List[MessageEnvelope]:
        """Snapshot of pending messages, oldest first."""
        with self._lock:
            return list(self._messages)

    def purge(self) -> int:
        """Remove all pending messages without notifying anyone.

        Returns:
            Number of messages purged
        """
        with self._lock:
            count = len(self._messages)
            self._messages.clear()
            self._stats.messages_purged += count
        logger.info(f"Purged {count} messages from queue {self.name}")
        return count

    # Listeners

    def subscribe(
        self,
        listener_id: str,
        listener: EnqueueListener,
    ) -> List[MessageEnvelope]:
        """Attach an enqueue listener.

        Args:
            listener_id: Unique key for later removal
            listener: Called with every envelope enqueued from now on

        Returns:
            Messages already pending at the moment of attachment
        """
        with self._lock:
            self._listeners[listener_id] = listener
            return list(self._messages)

    def unsubscribe(self, listener_id: str) -> bool:
        """Detach an enqueue listener.

        Returns:
            True if the listener was attached
        """
        with self._lock:
            return self._listeners.pop(listener_id, None) is not None

    @property
    def consumer_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    # Bindings

    def add_binding(self, binding: Binding) -> None:
        with self._binding_lock:
            self._bindings[binding.key] = binding

    def remove_binding(self, key: Tuple[str, str, str]) -> Optional[Binding]:
        with self._binding_lock:
            return self._bindings.pop(key, None)

    def get_bindings(self) -> List[Binding]:
        """Get all bindings pointing at this queue."""
        with self._binding_lock:
            return list(self._bindings.values())

    # Lifecycle

    def delete(self) -> None:
        """Mark the queue deleted and drop its listeners.

        Pending messages are left alone so envelopes already held in
        channels' in-flight tables keep a valid owner reference.
        """
        with self._lock:
            self._state = QueueState.DELETED
            self._listeners.clear()
        logger.info(f"Queue {self.name} deleted")

    def get_stats(self) -> QueueStats:
        """Get queue statistics."""
        with self._lock:
            return QueueStats(
                messages_ready=len(self._messages),
                consumers=len(self._listeners),
                bindings=len(self._bindings),
                messages_published=self._stats.messages_published,
                messages_purged=self._stats.messages_purged,
                created_at=self._stats.created_at,
                last_activity=self._stats.last_activity,
            )

    def __len__(self) -> int:
        """Get queue length."""
        return len(self._messages)

    def __repr__(self) -> str:
        return f"Queue(name={self.name!r}, messages={len(self._messages)}, state={self._state.name})"


__all__ = [
    "Queue",
    "QueueConfig",
    "QueueState",
    "QueueStats",
    "EnqueueListener",
]
