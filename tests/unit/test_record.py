from __future__ import annotations

import pytest

from dynamodown_py import Record, ValidationError
from dynamodown_py.record import from_item, key_to_str, to_item, to_key


def test_to_item_shape() -> None:
    assert to_item("!", "k", "v") == {
        "hkey": {"S": "!"},
        "rkey": {"S": "k"},
        "value": {"S": "v"},
    }
    assert to_key("p", b"k") == {"hkey": {"S": "p"}, "rkey": {"S": "k"}}


def test_record_round_trip_through_item() -> None:
    record = Record.build("p", "key", {"a": 1})
    assert Record.from_item(record.to_item()) == record
    assert record.value == {"M": {"a": {"N": "1"}}}


@pytest.mark.parametrize("key", [None, "", b""])
def test_invalid_keys_are_rejected(key: object) -> None:
    with pytest.raises(ValidationError):
        key_to_str(key)


def test_non_string_keys_are_stringified() -> None:
    assert key_to_str(12) == "12"
    assert key_to_str(bytearray(b"ab")) == "ab"


def test_from_item_decode_modes() -> None:
    item = to_item("!", "k", "v")
    assert from_item(item) == (b"k", b"v")
    assert from_item(item, key_as_buffer=False, value_as_buffer=False) == ("k", "v")
    assert from_item(item, key_as_buffer=False) == ("k", b"v")


def test_from_item_rejects_malformed_rows() -> None:
    with pytest.raises(ValidationError, match="malformed item"):
        Record.from_item({"hkey": {"S": "!"}, "rkey": {"S": "k"}})
