"""Tests for the shared broker state."""

from __future__ import annotations

import threading

import pytest

from roadqueue_fakes import BrokerConfig, BrokerState, Channel, ExchangeType
from roadqueue_fakes.queue.message import MessageEnvelope


class TestDeclare:
    def test_redeclare_keeps_existing_queue(self, state: BrokerState) -> None:
        first = state.declare_queue("q", durable=True)
        second = state.declare_queue("q", durable=False, arguments={"x": 1})
        assert second is first
        assert second.durable
        assert second.arguments == {}

    def test_redeclare_keeps_existing_exchange(self, state: BrokerState) -> None:
        first = state.declare_exchange("ex", "topic")
        second = state.declare_exchange("ex", "fanout")
        assert second is first
        assert second.type is ExchangeType.TOPIC

    def test_missing_lookups_return_none(self, state: BrokerState) -> None:
        assert state.get_queue("nope") is None
        assert state.get_exchange("nope") is None
        assert state.purge_queue("nope") == 0
        assert not state.delete_queue("nope")
        assert not state.delete_exchange("nope")

    def test_listing(self, state: BrokerState) -> None:
        state.declare_exchange("ex1")
        state.declare_exchange("ex2", "fanout")
        state.declare_queue("q")
        state.delete_exchange("ex1")

        assert state.list_exchanges() == ["ex2"]
        assert state.list_queues() == ["q"]


class TestBindings:
    def test_bind_updates_both_sides(self, state: BrokerState) -> None:
        exchange = state.declare_exchange("ex")
        queue = state.declare_queue("q")

        binding = state.bind("ex", "q", "k", {"a": 1})

        assert exchange.get_bindings() == [binding]
        assert queue.get_bindings() == [binding]

    def test_rebind_is_idempotent_last_arguments_win(self, state: BrokerState) -> None:
        exchange = state.declare_exchange("ex")
        queue = state.declare_queue("q")
        state.bind("ex", "q", "k", {"v": 1})
        state.bind("ex", "q", "k", {"v": 2})

        assert len(exchange.get_bindings()) == 1
        assert queue.get_bindings()[0].arguments == {"v": 2}

    def test_bind_with_missing_side_stores_nothing(self, state: BrokerState) -> None:
        exchange = state.declare_exchange("ex")
        queue = state.declare_queue("q")

        assert state.bind("ex", "missing", "k") is None
        assert state.bind("missing", "q", "k") is None
        assert exchange.get_bindings() == []
        assert queue.get_bindings() == []

    def test_unbind(self, state: BrokerState) -> None:
        exchange = state.declare_exchange("ex")
        queue = state.declare_queue("q")
        state.bind("ex", "q", "k")

        assert state.unbind("ex", "q", "k")
        assert not state.unbind("ex", "q", "k")
        assert exchange.get_bindings() == []
        assert queue.get_bindings() == []

    def test_delete_queue_drops_its_bindings(self, state: BrokerState) -> None:
        exchange = state.declare_exchange("ex")
        state.declare_queue("q")
        state.bind("ex", "q", "k")

        assert state.delete_queue("q")
        assert exchange.get_bindings() == []
        assert state.publish(MessageEnvelope("ex", "k")) == []

    def test_delete_exchange_drops_its_bindings(self, state: BrokerState) -> None:
        state.declare_exchange("ex")
        queue = state.declare_queue("q")
        state.bind("ex", "q", "k")

        assert state.delete_exchange("ex")
        assert queue.get_bindings() == []


class TestPublish:
    def test_unknown_exchange_is_created_as_direct(self, state: BrokerState) -> None:
        assert state.publish(MessageEnvelope("fresh", "k")) == []
        exchange = state.get_exchange("fresh")
        assert exchange is not None
        assert exchange.type is ExchangeType.DIRECT
        assert not exchange.durable

    def test_direct_route(self, state: BrokerState) -> None:
        state.declare_exchange("ex")
        queue = state.declare_queue("q")
        state.bind("ex", "q", "k")

        assert state.publish(MessageEnvelope("ex", "k", b"1")) == ["q"]
        assert state.publish(MessageEnvelope("ex", "j", b"2")) == []
        assert [m.body for m in queue.messages()] == [b"1"]

    def test_default_exchange_binding(self) -> None:
        state = BrokerState(BrokerConfig(bind_default_exchange=True))
        queue = state.declare_queue("jobs")

        assert state.publish(MessageEnvelope("", "jobs", b"x")) == ["jobs"]
        assert len(queue) == 1

    def test_stats(self, state: BrokerState) -> None:
        state.declare_exchange("ex")
        state.declare_queue("q")
        state.bind("ex", "q", "k")
        state.publish(MessageEnvelope("ex", "k"))
        state.publish(MessageEnvelope("ex", "none"))

        stats = state.get_stats()
        assert stats.queues == 1
        assert stats.exchanges == 1
        assert stats.bindings == 1
        assert stats.messages_published == 2
        assert stats.messages_unroutable == 1


class TestConcurrency:
    def test_channels_on_threads_share_state(self, state: BrokerState) -> None:
        threads_count = 8
        per_thread = 200
        errors = []

        def worker(index: int) -> None:
            try:
                with Channel(state) as channel:
                    channel.declare_queue("shared")
                    channel.declare_exchange("ex", "fanout")
                    channel.bind_queue("shared", "ex")
                    channel.declare_queue(f"own-{index}")
                    channel.bind_queue(f"own-{index}", "ex")
                    for _ in range(per_thread):
                        channel.publish("ex", "", b"m")
            except Exception as e:  # pragma: no cover - surfaced below
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(state.get_queue("shared")) == threads_count * per_thread
        assert len(state.list_queues()) == threads_count + 1

    def test_delivery_tags_are_unique_across_publisher_threads(
        self, state: BrokerState, recorder
    ) -> None:
        consumer_channel = Channel(state)
        consumer_channel.declare_queue("q")
        consumer_channel.consume("q", recorder)

        def publish() -> None:
            with Channel(state) as channel:
                for _ in range(100):
                    channel.publish("", "q", b"m")

        state.declare_exchange("")
        state.bind("", "q", "q")
        threads = [threading.Thread(target=publish) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(recorder.tags) == list(range(1, 401))
