"""Shared fixtures for the in-memory broker tests."""

from __future__ import annotations

from typing import Iterator, List

import pytest

from roadqueue_fakes import BrokerState, Channel, Consumer, ConnectionFactory, Delivery


class RecordingConsumer(Consumer):
    """Consumer that keeps every delivery and cancel it sees."""

    def __init__(self):
        super().__init__()
        self.deliveries: List[Delivery] = []
        self.cancelled: List[str] = []

    def handle_deliver(self, delivery: Delivery) -> None:
        self.deliveries.append(delivery)

    def handle_cancel_ok(self, consumer_tag: str) -> None:
        super().handle_cancel_ok(consumer_tag)
        self.cancelled.append(consumer_tag)

    @property
    def bodies(self) -> List[bytes]:
        return [delivery.body for delivery in self.deliveries]

    @property
    def tags(self) -> List[int]:
        return [delivery.delivery_tag for delivery in self.deliveries]


@pytest.fixture
def state() -> BrokerState:
    return BrokerState()


@pytest.fixture
def channel(state: BrokerState) -> Iterator[Channel]:
    with Channel(state) as ch:
        yield ch


@pytest.fixture
def factory(state: BrokerState) -> ConnectionFactory:
    return ConnectionFactory(state)


@pytest.fixture
def recorder() -> RecordingConsumer:
    return RecordingConsumer()


@pytest.fixture
def direct_topology(channel: Channel) -> Channel:
    """``ex1`` (direct) bound to ``q1`` with an empty routing key."""
    channel.declare_queue("q1")
    channel.declare_exchange("ex1", "direct")
    channel.bind_queue("q1", "ex1", "")
    return channel
