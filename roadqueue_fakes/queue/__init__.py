"""RoadQueue Fakes Queue Module - Messages and FIFO Queues.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from roadqueue_fakes.queue.message import (
    BasicProperties,
    Delivery,
    GetResult,
    MessageEnvelope,
    ReturnedMessage,
)
from roadqueue_fakes.queue.base import Queue, QueueConfig, QueueState, QueueStats

__all__ = [
    "BasicProperties",
    "Delivery",
    "GetResult",
    "MessageEnvelope",
    "ReturnedMessage",
    "Queue",
    "QueueConfig",
    "QueueState",
    "QueueStats",
]
