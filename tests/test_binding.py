"""Tests for binding keys and header matching."""

from __future__ import annotations

import pytest

from roadqueue_fakes.broker.binding import Binding, BindingKey, headers_match, match_mode


class TestBindingKey:
    @pytest.mark.parametrize(
        "pattern, routing_key, expected",
        [
            ("stock.usd", "stock.usd", True),
            ("stock.usd", "stock.eur", False),
            ("stock.*", "stock.usd", True),
            ("stock.*", "stock", False),
            ("stock.*", "stock.usd.nyse", False),
            ("stock.#", "stock", True),
            ("stock.#", "stock.usd", True),
            ("stock.#", "stock.usd.nyse", True),
            ("*.orange.*", "quick.orange.rabbit", True),
            ("*.orange.*", "quick.orange", False),
            ("#.b", "b", True),
            ("#.b", "a.c.b", True),
            ("#.b", "a.b.c", False),
            ("a.#.b", "a.b", True),
            ("a.#.b", "a.x.y.b", True),
            ("#", "", True),
            ("#", "any.thing.at.all", True),
            ("", "", True),
            ("", "a", False),
        ],
    )
    def test_topic_matching(self, pattern: str, routing_key: str, expected: bool) -> None:
        assert BindingKey(pattern).matches(routing_key) is expected

    def test_wildcard_inside_a_word_is_literal(self) -> None:
        key = BindingKey("a*b")
        assert key.is_exact()
        assert key.matches("a*b")
        assert not key.matches("axb")


class TestHeadersMatch:
    def test_all_is_the_default_mode(self) -> None:
        arguments = {"format": "pdf", "type": "report"}
        assert headers_match(arguments, {"format": "pdf", "type": "report", "x": 1})
        assert not headers_match(arguments, {"format": "pdf"})

    def test_any_needs_one_criterion(self) -> None:
        arguments = {"x-match": "any", "format": "pdf", "type": "report"}
        assert headers_match(arguments, {"format": "pdf"})
        assert not headers_match(arguments, {"format": "zip"})

    def test_directives_are_not_criteria(self) -> None:
        assert headers_match({"x-match": "all", "x-other": "ignored"}, {})

    def test_none_value_requires_presence_only(self) -> None:
        assert headers_match({"trace": None}, {"trace": "abc"})
        assert not headers_match({"trace": None}, {})

    def test_invalid_mode_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            match_mode({"x-match": "some"})


class TestBinding:
    def test_key_is_exchange_queue_routing_key(self) -> None:
        binding = Binding(exchange_name="ex", queue_name="q", routing_key="k")
        assert binding.key == ("ex", "q", "k")

    def test_to_dict(self) -> None:
        binding = Binding("ex", "q", "k", {"a": 1})
        data = binding.to_dict()
        assert data["exchange_name"] == "ex"
        assert data["arguments"] == {"a": 1}
