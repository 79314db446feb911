"""RoadQueue Fakes Exchange - Message Exchange Types.

An exchange routes each published message to the queues selected by its
bindings, using the rule for its declared type:
- Direct: Route to bindings whose key equals the routing key
- Topic: Route to bindings whose pattern matches the routing key
- Fanout: Broadcast to all bound queues
- Headers: Route on the message's header table

The rules form a closed table keyed by ``ExchangeType`` rather than a class
hierarchy, so a single ``Exchange`` class serves every type.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from roadqueue_fakes.broker.binding import Binding, headers_match, match_mode
from roadqueue_fakes.queue.base import Queue
from roadqueue_fakes.queue.message import MessageEnvelope

logger = logging.getLogger(__name__)


class ExchangeType(Enum):
    """Types of message exchanges."""

    DIRECT = "direct"    # Exact routing key match
    FANOUT = "fanout"    # Broadcast to all
    TOPIC = "topic"      # Pattern matching with wildcards
    HEADERS = "headers"  # Route based on headers

    @classmethod
    def parse(cls, value: Union[str, "ExchangeType", None]) -> "ExchangeType":
        """Create an exchange type from its AMQP name.

        None and the empty string mean direct.

        Raises:
            ValueError: If the name is not a known exchange type
        """
        if isinstance(value, ExchangeType):
            return value
        if not value:
            return cls.DIRECT
        try:
            return cls(value.lower())
        except ValueError:
            raise ValueError(f"Unknown exchange type: {value}") from None


RoutingRule = Callable[[Binding, MessageEnvelope], bool]


def _route_direct(binding: Binding, envelope: MessageEnvelope) -> bool:
    return binding.routing_key == envelope.routing_key


def _route_fanout(binding: Binding, envelope: MessageEnvelope) -> bool:
    return True


def _route_topic(binding: Binding, envelope: MessageEnvelope) -> bool:
    return binding.matches(envelope.routing_key)


def _route_headers(binding: Binding, envelope: MessageEnvelope) -> bool:
    return headers_match(binding.arguments, envelope.headers)


ROUTING_RULES: Dict[ExchangeType, RoutingRule] = {
    ExchangeType.DIRECT: _route_direct,
    ExchangeType.FANOUT: _route_fanout,
    ExchangeType.TOPIC: _route_topic,
    ExchangeType.HEADERS: _route_headers,
}


@dataclass
class ExchangeConfig:
    """Exchange configuration.

    Attributes:
        name: Exchange name
        type: Exchange type
        durable: Persist exchange definition (recorded only)
        auto_delete: Delete when no bindings (recorded only)
        internal: Only accessible by other exchanges (recorded only)
        arguments: Additional arguments
    """

    name: str
    type: ExchangeType = ExchangeType.DIRECT
    durable: bool = False
    auto_delete: bool = False
    internal: bool = False
    arguments: Dict[str, Any] = field(default_factory=dict)


class Exchange:
    """Named routing node."""

    def __init__(
        self,
        config: ExchangeConfig,
        binding_lock: Optional[threading.RLock] = None,
    ):
        """Initialize exchange.

        Args:
            config: Exchange configuration
            binding_lock: Lock guarding binding tables, shared with the
                broker so both sides of a binding change together
        """
        if config.type not in ROUTING_RULES:
            raise ValueError(f"Unknown exchange type: {config.type}")

        self.config = config
        self._bindings: Dict[Tuple[str, str, str], Binding] = {}
        self._lock = binding_lock or threading.RLock()
        self._stats = {
            "messages_routed": 0,
            "messages_dropped": 0,
        }

    @property
    def name(self) -> str:
        """Get exchange name."""
        return self.config.name

    @property
    def type(self) -> ExchangeType:
        """Get exchange type."""
        return self.config.type

    @property
    def durable(self) -> bool:
        return self.config.durable

    @property
    def auto_delete(self) -> bool:
        return self.config.auto_delete

    @property
    def arguments(self) -> Dict[str, Any]:
        return self.config.arguments

    def add_binding(self, binding: Binding) -> None:
        """Add or replace a binding.

        Raises:
            ValueError: If a headers binding carries a bad ``x-match``
        """
        if self.type is ExchangeType.HEADERS:
            match_mode(binding.arguments)
        with self._lock:
            self._bindings[binding.key] = binding

    def remove_binding(self, key: Tuple[str, str, str]) -> Optional[Binding]:
        with self._lock:
            return self._bindings.pop(key, None)

    def get_bindings(self) -> List[Binding]:
        """Get all bindings."""
        with self._lock:
            return list(self._bindings.values())

    def route(self, envelope: MessageEnvelope) -> List[str]:
        """Select destination queues for a message.

        A queue bound by several matching bindings is listed once.

        Args:
            envelope: Message to route

        Returns:
            Queue names in binding order
        """
        rule = ROUTING_RULES[self.type]
        queues: List[str] = []

        for binding in self.get_bindings():
            if binding.queue_name not in queues and rule(binding, envelope):
                queues.append(binding.queue_name)

        with self._lock:
            if queues:
                self._stats["messages_routed"] += 1
            else:
                self._stats["messages_dropped"] += 1

        return queues

    def publish(
        self,
        envelope: MessageEnvelope,
        lookup: Callable[[str], Optional[Queue]],
    ) -> List[str]:
        """Route a message and enqueue one copy per destination.

        Args:
            envelope: Message to publish
            lookup: Resolves a queue name to a live queue

        Returns:
            Names of the queues that received a copy
        """
        delivered = []
        for queue_name in self.route(envelope):
            queue = lookup(queue_name)
            if queue is None:
                logger.debug(f"Skipping missing queue {queue_name} on {self.name!r}")
                continue
            queue.enqueue(envelope.for_queue(queue_name))
            delivered.append(queue_name)
        return delivered

    def get_stats(self) -> Dict[str, Any]:
        """Get exchange statistics."""
        with self._lock:
            return {
                "name": self.name,
                "type": self.type.value,
                "bindings": len(self._bindings),
                **self._stats,
            }

    def __repr__(self) -> str:
        return f"Exchange(name={self.name!r}, type={self.type.value})"


__all__ = [
    "Exchange",
    "ExchangeType",
    "ExchangeConfig",
    "ROUTING_RULES",
    "RoutingRule",
]
