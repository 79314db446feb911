"""RoadQueue Fakes Errors - Broker Exception Taxonomy.

Lookups that miss return ``None``/zero rather than raising; these
exceptions are reserved for the cases the caller cannot ignore.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from typing import Any, Optional


class BrokerError(Exception):
    """Base class for all in-memory broker errors."""


class AlreadyClosedError(BrokerError):
    """Operation attempted on a closed channel or connection.

    Attributes:
        reason: The shutdown reason recorded when the object was closed
    """

    def __init__(self, reason: Optional[Any] = None):
        self.reason = reason
        super().__init__(f"Already closed: {reason}")


class NotFoundError(BrokerError):
    """A passive declare referenced an entity that does not exist."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"NOT_FOUND - no {kind} '{name}'")


__all__ = [
    "BrokerError",
    "AlreadyClosedError",
    "NotFoundError",
]
