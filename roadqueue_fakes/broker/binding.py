"""RoadQueue Fakes Binding - Exchange-Queue Bindings.

This module defines the binding record shared by an exchange and a queue,
and the two matchers routing relies on: dot-segment topic patterns and
header tables.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

MATCH_ALL = "all"
MATCH_ANY = "any"
MATCH_ARGUMENT = "x-match"


@dataclass(frozen=True)
class BindingKey:
    """A routing/binding key with pattern matching support.

    Supports AMQP-style wildcards:
    - * matches exactly one word
    - # matches zero or more words
    - . separates words
    """

    pattern: str

    @property
    def words(self) -> List[str]:
        return self.pattern.split(".")

    def matches(self, routing_key: str) -> bool:
        """Check if a routing key matches this pattern.

        Args:
            routing_key: Key to match

        Returns:
            True if matches
        """
        if self.is_exact():
            return self.pattern == routing_key

        key_words = routing_key.split(".")
        size = len(key_words)

        # Word positions in the key reachable after each pattern word
        positions = {0}
        for word in self.words:
            if word == "#":
                start = min(positions)
                positions = set(range(start, size + 1))
            else:
                positions = {
                    pos + 1
                    for pos in positions
                    if pos < size and (word == "*" or key_words[pos] == word)
                }
            if not positions:
                return False

        return size in positions

    def is_exact(self) -> bool:
        """Check if this is an exact (no wildcards) pattern."""
        return "*" not in self.words and "#" not in self.words


def match_mode(arguments: Mapping[str, Any]) -> str:
    """Get the ``x-match`` mode of a headers binding.

    Raises:
        ValueError: If the mode is neither ``all`` nor ``any``
    """
    mode = arguments.get(MATCH_ARGUMENT, MATCH_ALL)
    if isinstance(mode, bytes):
        mode = mode.decode()
    if mode not in (MATCH_ALL, MATCH_ANY):
        raise ValueError(f"Invalid x-match value: {mode!r}")
    return mode


def headers_match(
    arguments: Mapping[str, Any],
    headers: Mapping[str, Any],
) -> bool:
    """Check a message's headers against a headers binding.

    Arguments starting with ``x-`` are directives, not match criteria.
    A criterion whose value is None only requires the header to be present.

    Args:
        arguments: Binding arguments
        headers: Message headers

    Returns:
        True if the binding selects the message
    """
    criteria = {
        key: value
        for key, value in arguments.items()
        if not key.startswith("x-")
    }

    def satisfied(key: str, value: Any) -> bool:
        if key not in headers:
            return False
        return value is None or headers[key] == value

    if match_mode(arguments) == MATCH_ANY:
        return any(satisfied(k, v) for k, v in criteria.items())
    return all(satisfied(k, v) for k, v in criteria.items())


@dataclass
class Binding:
    """A binding between an exchange and a queue.

    Identified by ``(exchange_name, queue_name, routing_key)``; binding the
    same key again replaces the arguments.

    Attributes:
        exchange_name: Source exchange
        queue_name: Target queue
        routing_key: Routing key or topic pattern
        arguments: Additional binding arguments
        created_at: When binding was created
    """

    exchange_name: str
    queue_name: str
    routing_key: str = ""
    arguments: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    _pattern: Optional[BindingKey] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self._pattern = BindingKey(self.routing_key)

    @property
    def key(self) -> Tuple[str, str, str]:
        """Composite key of this binding."""
        return binding_key(self.exchange_name, self.queue_name, self.routing_key)

    def matches(self, routing_key: str) -> bool:
        """Check if routing key matches this binding's topic pattern."""
        return self._pattern.matches(routing_key)

    def to_dict(self) -> Dict[str, Any]:
        """Convert binding to dictionary."""
        return {
            "exchange_name": self.exchange_name,
            "queue_name": self.queue_name,
            "routing_key": self.routing_key,
            "arguments": self.arguments,
            "created_at": self.created_at.isoformat(),
        }


def binding_key(exchange: str, queue: str, routing_key: str) -> Tuple[str, str, str]:
    """Build the composite key identifying a binding."""
    return (exchange, queue, routing_key)


__all__ = [
    "Binding",
    "BindingKey",
    "binding_key",
    "headers_match",
    "match_mode",
    "MATCH_ALL",
    "MATCH_ANY",
]
