"""Tests for option annotation parsing."""

from __future__ import annotations

import pytest

from behaviourkit.exceptions import OptionsParseError
from behaviourkit.options import parse_options


class TestJsonOptions:
    """Strings starting with ``{`` are JSON objects."""

    def test_json_object(self) -> None:
        assert parse_options('{"name": "Ann", "count": 2, "tags": ["a"]}') == {
            "name": "Ann",
            "count": 2,
            "tags": ["a"],
        }

    def test_invalid_json_raises_parse_error(self) -> None:
        with pytest.raises(OptionsParseError) as excinfo:
            parse_options("{name: Ann}")
        assert isinstance(excinfo.value, ValueError)
        assert excinfo.value.__cause__ is not None


class TestQueryStringOptions:
    """Everything else is an ``&``-joined list of ``key=value`` pairs."""

    def test_pairs(self) -> None:
        assert parse_options("a=1&b=two") == {"a": "1", "b": "two"}

    def test_percent_decoding(self) -> None:
        assert parse_options("greeting=hello%20world&na%26me=x%3Dy") == {
            "greeting": "hello world",
            "na&me": "x=y",
        }

    def test_plus_is_not_a_space(self) -> None:
        assert parse_options("q=a+b") == {"q": "a+b"}

    def test_equals_inside_value_is_kept(self) -> None:
        assert parse_options("expr=a=b=c") == {"expr": "a=b=c"}

    def test_last_duplicate_wins(self) -> None:
        assert parse_options("a=1&a=2&b=3&a=4") == {"a": "4", "b": "3"}

    def test_key_without_value(self) -> None:
        assert parse_options("flag") == {"flag": ""}
