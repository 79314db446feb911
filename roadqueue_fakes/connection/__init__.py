"""RoadQueue Fakes Connection Module.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from roadqueue_fakes.connection.connection import (
    Connection,
    ConnectionFactory,
    ConnectionParameters,
)

__all__ = [
    "Connection",
    "ConnectionFactory",
    "ConnectionParameters",
]
