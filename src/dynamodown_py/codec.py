"""Conversion between Python values and DynamoDB attribute values.

None, ``""`` and ``b""`` all encode to ``{"NULL": True}`` because DynamoDB
rejects empty string and binary attribute values in many contexts; on the way
back ``NULL`` becomes ``b""`` or ``None`` depending only on ``as_buffer``.
Which of the three was written is not recoverable.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, TypeAlias

from boto3.dynamodb.types import BINARY, BOOLEAN, LIST, MAP, NULL, NUMBER, STRING

from .errors import DecodeError, UnsupportedTypeError

TaggedValue: TypeAlias = dict[str, Any]

_INTEGRAL = re.compile(r"^[+-]?\d+$")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, bytearray)) and len(value) == 0:
        return True
    if isinstance(value, memoryview) and value.nbytes == 0:
        return True
    return False


def _encode_number(value: int | float | Decimal) -> str:
    if isinstance(value, float):
        if not math.isfinite(value):
            raise UnsupportedTypeError(f"float({value!r})")
        return repr(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise UnsupportedTypeError(f"Decimal({value!s})")
        return str(value)
    return str(value)


def encode(value: Any, *, as_buffer: bool = True) -> TaggedValue:
    if _is_empty(value):
        return {NULL: True}

    # bool is an int subclass, so it must be classified first.
    if isinstance(value, bool):
        return {BOOLEAN: value}
    if isinstance(value, str):
        return {STRING: value}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {BINARY: bytes(value)}
    if isinstance(value, (int, float, Decimal)):
        return {NUMBER: _encode_number(value)}
    if isinstance(value, (list, tuple)):
        return {LIST: [encode(v, as_buffer=as_buffer) for v in value]}
    if isinstance(value, Mapping):
        return {MAP: {str(k): encode(v, as_buffer=as_buffer) for k, v in value.items()}}

    raise UnsupportedTypeError(type(value).__name__)


def _decode_number(text: str, use_decimal: bool) -> int | float | Decimal:
    if use_decimal:
        return Decimal(text)
    if _INTEGRAL.match(text):
        return int(text)
    return float(text)


def decode(tagged: Any, *, as_buffer: bool = True, use_decimal: bool = False) -> Any:
    """Turn a tagged attribute value back into a Python value.

    Numbers come back as ``int`` or ``float``; with ``use_decimal`` every ``N``
    is returned as the exact ``Decimal`` it was stored as.
    """
    if not isinstance(tagged, Mapping) or len(tagged) != 1:
        raise DecodeError(f"attribute value {tagged!r}")

    (tag, value), *_ = tagged.items()

    if tag == NULL:
        return b"" if as_buffer else None
    if tag == STRING:
        return value.encode("utf-8") if as_buffer else value
    if tag == BINARY:
        return bytes(value)
    if tag == BOOLEAN:
        return bool(value)
    if tag == NUMBER:
        try:
            return _decode_number(str(value), use_decimal)
        except (ValueError, ArithmeticError) as err:
            raise DecodeError(f"{NUMBER} {value!r}") from err
    if tag == LIST:
        return [decode(v, as_buffer=as_buffer, use_decimal=use_decimal) for v in value]
    if tag == MAP:
        return {k: decode(v, as_buffer=as_buffer, use_decimal=use_decimal) for k, v in value.items()}

    raise DecodeError(str(tag))
