from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .codec import TaggedValue, decode, encode
from .errors import ValidationError

HASH_KEY_ATTR = "hkey"
RANGE_KEY_ATTR = "rkey"
VALUE_ATTR = "value"


def key_to_str(key: Any) -> str:
    if key is None:
        raise ValidationError("key cannot be None")
    if isinstance(key, (bytes, bytearray, memoryview)):
        key = bytes(key).decode("utf-8")
    else:
        key = str(key)
    if not key:
        raise ValidationError("key cannot be empty")
    return key


@dataclass(frozen=True)
class Record:
    partition_key: str
    sort_key: str
    value: TaggedValue

    @staticmethod
    def build(partition_key: str, key: Any, value: Any, *, as_buffer: bool = True) -> Record:
        return Record(
            partition_key=partition_key,
            sort_key=key_to_str(key),
            value=encode(value, as_buffer=as_buffer),
        )

    @staticmethod
    def from_item(item: Mapping[str, Any]) -> Record:
        try:
            return Record(
                partition_key=str(item[HASH_KEY_ATTR]["S"]),
                sort_key=str(item[RANGE_KEY_ATTR]["S"]),
                value=dict(item[VALUE_ATTR]),
            )
        except (KeyError, TypeError) as err:
            raise ValidationError(f"malformed item: {err}") from err

    def to_item(self) -> dict[str, Any]:
        return {
            HASH_KEY_ATTR: {"S": self.partition_key},
            RANGE_KEY_ATTR: {"S": self.sort_key},
            VALUE_ATTR: self.value,
        }


def to_key(partition_key: str, key: Any) -> dict[str, Any]:
    return {
        HASH_KEY_ATTR: {"S": partition_key},
        RANGE_KEY_ATTR: {"S": key_to_str(key)},
    }


def to_item(partition_key: str, key: Any, value: Any, *, as_buffer: bool = True) -> dict[str, Any]:
    return Record.build(partition_key, key, value, as_buffer=as_buffer).to_item()


def item_sort_key(item: Mapping[str, Any]) -> str:
    return str(item[RANGE_KEY_ATTR]["S"])


def from_item(
    item: Mapping[str, Any],
    *,
    key_as_buffer: bool = True,
    value_as_buffer: bool = True,
) -> tuple[str | bytes, Any]:
    record = Record.from_item(item)
    key: str | bytes = record.sort_key.encode("utf-8") if key_as_buffer else record.sort_key
    return key, decode(record.value, as_buffer=value_as_buffer)
