"""RoadQueue Fakes - In-Memory Broker Simulation.

RoadQueue Fakes reproduces AMQP routing and delivery semantics entirely in
memory, so code written against publish/subscribe patterns can be tested
deterministically without a network or a running broker.

Architecture Overview:
┌─────────────────────────────────────────────────────────────────────────┐
│                          RoadQueue Fakes                                │
├─────────────────────────────────────────────────────────────────────────┤
│  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐   │
│  │ Connection  │  │   Channel   │  │  Exchange   │  │    Queue    │   │
│  │             │──▶│             │──▶│             │──▶│             │   │
│  │ • Factory   │  │ • Declare   │  │ • Direct    │  │ • FIFO      │   │
│  │ • Channels  │  │ • Publish   │  │ • Fanout    │  │ • Notify    │   │
│  │ • Close     │  │ • Consume   │  │ • Topic     │  │ • Purge     │   │
│  │             │  │ • Ack/Nack  │  │ • Headers   │  │             │   │
│  └─────────────┘  └─────────────┘  └─────────────┘  └─────────────┘   │
├─────────────────────────────────────────────────────────────────────────┤
│  ┌───────────────────────────────────────────────────────────────────┐ │
│  │                        Broker Module                              │ │
│  │  • BrokerState - Registry of exchanges and queues                 │ │
│  │  • Exchange - Type-selected routing rules                         │ │
│  │  • Binding - Exchange-queue bindings, topic and header matching   │ │
│  └───────────────────────────────────────────────────────────────────┘ │
│  ┌───────────────────────────────────────────────────────────────────┐ │
│  │                        Channel Module                             │ │
│  │  • Channel - Topology, publish, consume, acknowledgement          │ │
│  │  • Consumer - Push-mode consumer hooks                            │ │
│  │  • QueueingConsumer - Buffered synchronous retrieval              │ │
│  └───────────────────────────────────────────────────────────────────┘ │
└─────────────────────────────────────────────────────────────────────────┘

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

# Queue components
from roadqueue_fakes.queue.message import (
    BasicProperties,
    Delivery,
    GetResult,
    MessageEnvelope,
    ReturnedMessage,
)
from roadqueue_fakes.queue.base import Queue, QueueConfig

# Broker components
from roadqueue_fakes.broker.broker import BrokerState, BrokerConfig
from roadqueue_fakes.broker.exchange import Exchange, ExchangeType
from roadqueue_fakes.broker.binding import Binding

# Channel components
from roadqueue_fakes.channel.channel import Channel, QueueDeclareOk, ShutdownReason
from roadqueue_fakes.channel.consumer import (
    CallbackConsumer,
    Consumer,
    QueueingConsumer,
)

# Connection components
from roadqueue_fakes.connection.connection import (
    Connection,
    ConnectionFactory,
    ConnectionParameters,
)

# Errors
from roadqueue_fakes.errors import AlreadyClosedError, BrokerError, NotFoundError

__version__ = "1.0.0"
__author__ = "BlackRoad OS"
__license__ = "Proprietary"

__all__ = [
    # Version
    "__version__",
    # Queue
    "BasicProperties",
    "Delivery",
    "GetResult",
    "MessageEnvelope",
    "ReturnedMessage",
    "Queue",
    "QueueConfig",
    # Broker
    "BrokerState",
    "BrokerConfig",
    "Exchange",
    "ExchangeType",
    "Binding",
    # Channel
    "Channel",
    "QueueDeclareOk",
    "ShutdownReason",
    "Consumer",
    "CallbackConsumer",
    "QueueingConsumer",
    # Connection
    "Connection",
    "ConnectionFactory",
    "ConnectionParameters",
    # Errors
    "AlreadyClosedError",
    "BrokerError",
    "NotFoundError",
]
