"""Tests for exchange routing."""

from __future__ import annotations

import pytest

from roadqueue_fakes.broker.binding import Binding
from roadqueue_fakes.broker.exchange import (
    ROUTING_RULES,
    Exchange,
    ExchangeConfig,
    ExchangeType,
)
from roadqueue_fakes.queue.base import Queue
from roadqueue_fakes.queue.message import BasicProperties, MessageEnvelope


def make_exchange(exchange_type: ExchangeType, *bindings: Binding) -> Exchange:
    exchange = Exchange(ExchangeConfig(name="ex", type=exchange_type))
    for binding in bindings:
        exchange.add_binding(binding)
    return exchange


class TestExchangeType:
    def test_every_type_has_a_rule(self) -> None:
        assert set(ROUTING_RULES) == set(ExchangeType)

    @pytest.mark.parametrize("value", ["topic", "TOPIC", ExchangeType.TOPIC])
    def test_parse(self, value) -> None:
        assert ExchangeType.parse(value) is ExchangeType.TOPIC

    def test_parse_empty_is_direct(self) -> None:
        assert ExchangeType.parse(None) is ExchangeType.DIRECT
        assert ExchangeType.parse("") is ExchangeType.DIRECT

    def test_parse_unknown(self) -> None:
        with pytest.raises(ValueError):
            ExchangeType.parse("x-delayed")


class TestRouting:
    def test_direct_is_exact_and_case_sensitive(self) -> None:
        exchange = make_exchange(
            ExchangeType.DIRECT,
            Binding("ex", "q1", "k"),
            Binding("ex", "q2", "K"),
        )
        assert exchange.route(MessageEnvelope("ex", "k")) == ["q1"]
        assert exchange.route(MessageEnvelope("ex", "other")) == []

    def test_fanout_ignores_routing_key(self) -> None:
        exchange = make_exchange(
            ExchangeType.FANOUT,
            Binding("ex", "q1", "a"),
            Binding("ex", "q2", "b"),
        )
        assert exchange.route(MessageEnvelope("ex", "zzz")) == ["q1", "q2"]

    def test_topic(self) -> None:
        exchange = make_exchange(
            ExchangeType.TOPIC,
            Binding("ex", "all", "#"),
            Binding("ex", "usd", "stock.usd.*"),
            Binding("ex", "stock", "stock.#"),
        )
        assert exchange.route(MessageEnvelope("ex", "stock.usd.nyse")) == ["all", "usd", "stock"]
        assert exchange.route(MessageEnvelope("ex", "bond.eur")) == ["all"]

    def test_headers(self) -> None:
        exchange = make_exchange(
            ExchangeType.HEADERS,
            Binding("ex", "pdf", "", {"format": "pdf"}),
            Binding("ex", "either", "", {"x-match": "any", "format": "zip", "lang": "en"}),
        )
        envelope = MessageEnvelope(
            "ex", "", properties=BasicProperties(headers={"format": "pdf", "lang": "en"})
        )
        assert exchange.route(envelope) == ["pdf", "either"]
        assert exchange.route(MessageEnvelope("ex", "")) == []

    def test_headers_from_mapping_properties(self) -> None:
        exchange = make_exchange(ExchangeType.HEADERS, Binding("ex", "q", "", {"a": 1}))
        envelope = MessageEnvelope("ex", "", properties={"headers": {"a": 1}})
        assert exchange.route(envelope) == ["q"]

    def test_headers_binding_with_bad_mode_is_rejected(self) -> None:
        exchange = make_exchange(ExchangeType.HEADERS)
        with pytest.raises(ValueError):
            exchange.add_binding(Binding("ex", "q", "", {"x-match": "most"}))
        assert exchange.get_bindings() == []

    def test_queue_matched_twice_is_listed_once(self) -> None:
        exchange = make_exchange(
            ExchangeType.TOPIC,
            Binding("ex", "q", "a.*"),
            Binding("ex", "q", "#"),
        )
        assert exchange.route(MessageEnvelope("ex", "a.b")) == ["q"]

    def test_rebinding_same_key_replaces_arguments(self) -> None:
        exchange = make_exchange(
            ExchangeType.DIRECT,
            Binding("ex", "q", "k", {"v": 1}),
            Binding("ex", "q", "k", {"v": 2}),
        )
        bindings = exchange.get_bindings()
        assert len(bindings) == 1
        assert bindings[0].arguments == {"v": 2}

    def test_stats(self) -> None:
        exchange = make_exchange(ExchangeType.DIRECT, Binding("ex", "q", "k"))
        exchange.route(MessageEnvelope("ex", "k"))
        exchange.route(MessageEnvelope("ex", "nope"))
        stats = exchange.get_stats()
        assert stats["type"] == "direct"
        assert stats["messages_routed"] == 1
        assert stats["messages_dropped"] == 1


class TestPublish:
    def test_each_queue_gets_its_own_copy(self) -> None:
        queues = {"q1": Queue(name="q1"), "q2": Queue(name="q2")}
        exchange = make_exchange(
            ExchangeType.FANOUT,
            Binding("ex", "q1"),
            Binding("ex", "q2"),
        )
        envelope = MessageEnvelope("ex", "", b"body")

        assert exchange.publish(envelope, queues.get) == ["q1", "q2"]

        first, second = queues["q1"].peek(), queues["q2"].peek()
        assert first is not second
        assert (first.queue, second.queue) == ("q1", "q2")
        assert first.body == second.body == b"body"

    def test_missing_queue_is_skipped(self) -> None:
        exchange = make_exchange(ExchangeType.FANOUT, Binding("ex", "gone"))
        assert exchange.publish(MessageEnvelope("ex", ""), lambda name: None) == []
