"""RoadQueue Fakes Broker Module - Routing Graph.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from roadqueue_fakes.broker.broker import BrokerState, BrokerConfig, BrokerStats
from roadqueue_fakes.broker.exchange import Exchange, ExchangeConfig, ExchangeType
from roadqueue_fakes.broker.binding import Binding, BindingKey

__all__ = [
    "BrokerState",
    "BrokerConfig",
    "BrokerStats",
    "Exchange",
    "ExchangeConfig",
    "ExchangeType",
    "Binding",
    "BindingKey",
]
