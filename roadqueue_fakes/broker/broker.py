"""RoadQueue Fakes Broker - Shared Broker State.

``BrokerState`` is the registry of every exchange and queue of one
simulated broker. It is created explicitly by the caller and handed to
each channel; channels on different threads may share it.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from roadqueue_fakes.broker.binding import Binding, binding_key
from roadqueue_fakes.broker.exchange import Exchange, ExchangeConfig, ExchangeType
from roadqueue_fakes.queue.base import Queue, QueueConfig
from roadqueue_fakes.queue.message import MessageEnvelope

logger = logging.getLogger(__name__)

DEFAULT_EXCHANGE = ""


@dataclass
class BrokerConfig:
    """Broker configuration.

    Attributes:
        name: Broker name/identifier
        bind_default_exchange: Bind every new queue to the default
            exchange under its own name, as AMQP brokers do
    """

    name: str = "roadqueue"
    bind_default_exchange: bool = False


@dataclass
class BrokerStats:
    """Broker statistics."""

    queues: int = 0
    exchanges: int = 0
    bindings: int = 0
    messages_published: int = 0
    messages_unroutable: int = 0
    created_at: Optional[datetime] = None


class BrokerState:
    """Registry of exchanges and queues.

    Features:
    - Idempotent declares (an existing entity always wins)
    - Binding changes applied to both sides under one lock
    - Lookups of missing names return None rather than raising
    - Publishing to an unknown exchange creates it as a direct exchange
    """

    def __init__(self, config: Optional[BrokerConfig] = None):
        """Initialize broker state.

        Args:
            config: Broker configuration
        """
        self.config = config or BrokerConfig()

        self._exchanges: Dict[str, Exchange] = {}
        self._queues: Dict[str, Queue] = {}
        self._lock = threading.RLock()
        self._created_at = datetime.now()
        self._stats = {
            "messages_published": 0,
            "messages_unroutable": 0,
        }

        if self.config.bind_default_exchange:
            self.declare_exchange(DEFAULT_EXCHANGE, ExchangeType.DIRECT, durable=True)

    # Exchange Management

    def declare_exchange(
        self,
        name: str,
        exchange_type: Union[ExchangeType, str, None] = ExchangeType.DIRECT,
        durable: bool = False,
        auto_delete: bool = False,
        internal: bool = False,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> Exchange:
        """Declare an exchange.

        Args:
            name: Exchange name
            exchange_type: Type of exchange
            durable: Persist exchange
            auto_delete: Delete when no bindings
            internal: Internal use only
            arguments: Additional arguments

        Returns:
            The existing exchange, or the newly created one
        """
        exchange_type = ExchangeType.parse(exchange_type)

        with self._lock:
            existing = self._exchanges.get(name)
            if existing is not None:
                return existing

            exchange = Exchange(
                ExchangeConfig(
                    name=name,
                    type=exchange_type,
                    durable=durable,
                    auto_delete=auto_delete,
                    internal=internal,
                    arguments=dict(arguments or {}),
                ),
                binding_lock=self._lock,
            )
            self._exchanges[name] = exchange

        logger.info(f"Declared exchange: {name!r} (type={exchange_type.value})")
        return exchange

    def delete_exchange(self, name: str) -> bool:
        """Delete an exchange and drop its bindings from bound queues.

        Returns:
            True if deleted
        """
        with self._lock:
            exchange = self._exchanges.pop(name, None)
            if exchange is None:
                return False

            for binding in exchange.get_bindings():
                queue = self._queues.get(binding.queue_name)
                if queue is not None:
                    queue.remove_binding(binding.key)

        logger.info(f"Deleted exchange: {name!r}")
        return True

    def get_exchange(self, name: str) -> Optional[Exchange]:
        """Get an exchange by name."""
        with self._lock:
            return self._exchanges.get(name)

    def list_exchanges(self) -> List[str]:
        """List all exchange names."""
        with self._lock:
            return list(self._exchanges.keys())

    # Queue Management

    def declare_queue(
        self,
        name: str,
        durable: bool = False,
        exclusive: bool = False,
        auto_delete: bool = False,
        arguments: Optional[Dict[str, Any]] = None,
    ) -> Queue:
        """Declare a queue.

        Args:
            name: Queue name
            durable: Persist queue
            exclusive: Single connection only
            auto_delete: Delete when unused
            arguments: Additional arguments

        Returns:
            The existing queue, or the newly created one
        """
        with self._lock:
            existing = self._queues.get(name)
            if existing is not None:
                return existing

            queue = Queue(
                QueueConfig(
                    name=name,
                    durable=durable,
                    exclusive=exclusive,
                    auto_delete=auto_delete,
                    arguments=dict(arguments or {}),
                ),
                binding_lock=self._lock,
            )
            self._queues[name] = queue

            if self.config.bind_default_exchange:
                self.bind(DEFAULT_EXCHANGE, name, name)

        logger.info(f"Declared queue: {name}")
        return queue

    def delete_queue(self, name: str) -> bool:
        """Delete a queue and drop its bindings from their exchanges.

        Returns:
            True if deleted
        """
        with self._lock:
            queue = self._queues.pop(name, None)
            if queue is None:
                return False

            for binding in queue.get_bindings():
                exchange = self._exchanges.get(binding.exchange_name)
                if exchange is not None:
                    exchange.remove_binding(binding.key)

        queue.delete()
        return True

    def purge_queue(self, name: str) -> int:
        """Purge all messages from a queue.

        Returns:
            Number of messages purged, 0 if the queue does not exist
        """
        queue = self.get_queue(name)
        if queue is None:
            return 0
        return queue.purge()

    def get_queue(self, name: str) -> Optional[Queue]:
        """Get a queue by name."""
        with self._lock:
            return self._queues.get(name)

    def list_queues(self) -> List[str]:
        """List all queue names."""
        with self._lock:
            return list(self._queues.keys())

    # Binding Management

    def bind(
        self,
        exchange: str,
        queue: str,
        routing_key: str = "",
        arguments: Optional[Dict[str, Any]] = None,
    ) -> Optional[Binding]:
        """Create or replace a binding.

        Both ends must exist; otherwise nothing is stored.

        Args:
            exchange: Exchange name
            queue: Queue name
            routing_key: Routing key or pattern
            arguments: Binding arguments

        Returns:
            The stored binding, or None if an end is missing
        """
        with self._lock:
            source = self._exchanges.get(exchange)
            target = self._queues.get(queue)
            if source is None or target is None:
                logger.warning(
                    f"Cannot bind {queue!r} to {exchange!r}: "
                    f"{'exchange' if source is None else 'queue'} not found"
                )
                return None

            binding = Binding(
                exchange_name=exchange,
                queue_name=queue,
                routing_key=routing_key,
                arguments=dict(arguments or {}),
            )
            source.add_binding(binding)
            target.add_binding(binding)

        logger.info(f"Bound {queue} to {exchange!r} with key {routing_key!r}")
        return binding

    def unbind(
        self,
        exchange: str,
        queue: str,
        routing_key: str = "",
    ) -> bool:
        """Remove a binding from both ends.

        Returns:
            True if either end held the binding
        """
        key = binding_key(exchange, queue, routing_key)

        with self._lock:
            removed = False
            source = self._exchanges.get(exchange)
            if source is not None and source.remove_binding(key) is not None:
                removed = True
            target = self._queues.get(queue)
            if target is not None and target.remove_binding(key) is not None:
                removed = True

        if removed:
            logger.info(f"Unbound {queue} from {exchange!r}")
        return removed

    # Message Publishing

    def publish(self, envelope: MessageEnvelope) -> List[str]:
        """Route a message into the queue graph.

        An unknown exchange is created as a non-durable direct exchange.

        Args:
            envelope: Message to publish

        Returns:
            Names of the queues that received a copy
        """
        with self._lock:
            exchange = self._exchanges.get(envelope.exchange)
            if exchange is None:
                exchange = Exchange(
                    ExchangeConfig(name=envelope.exchange, type=ExchangeType.DIRECT),
                    binding_lock=self._lock,
                )
                self._exchanges[envelope.exchange] = exchange
                logger.info(f"Auto-created exchange: {envelope.exchange!r}")
            self._stats["messages_published"] += 1

        delivered = exchange.publish(envelope, self.get_queue)

        if not delivered:
            with self._lock:
                self._stats["messages_unroutable"] += 1

        return delivered

    # Statistics

    def get_stats(self) -> BrokerStats:
        """Get broker statistics."""
        with self._lock:
            return BrokerStats(
                queues=len(self._queues),
                exchanges=len(self._exchanges),
                bindings=sum(
                    len(exchange.get_bindings())
                    for exchange in self._exchanges.values()
                ),
                messages_published=self._stats["messages_published"],
                messages_unroutable=self._stats["messages_unroutable"],
                created_at=self._created_at,
            )

    def __repr__(self) -> str:
        return (
            f"BrokerState(name={self.config.name!r}, "
            f"exchanges={len(self._exchanges)}, queues={len(self._queues)})"
        )


__all__ = [
    "BrokerState",
    "BrokerConfig",
    "BrokerStats",
    "DEFAULT_EXCHANGE",
]
