"""RoadQueue Fakes Channel Module - Sessions and Consumers.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from roadqueue_fakes.channel.channel import Channel, QueueDeclareOk, ShutdownReason
from roadqueue_fakes.channel.consumer import (
    CallbackConsumer,
    Consumer,
    QueueingConsumer,
)

__all__ = [
    "Channel",
    "QueueDeclareOk",
    "ShutdownReason",
    "Consumer",
    "CallbackConsumer",
    "QueueingConsumer",
]
