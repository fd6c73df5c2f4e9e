from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

ComparisonOperator: TypeAlias = Literal["BETWEEN", "GT", "GE", "LT", "LE"]

# DynamoDB orders string sort keys by their UTF-8 bytes: "\x00" sorts first and
# U+10FFFF encodes to the largest lead byte a valid string can carry.
MIN_SENTINEL = "\x00"
MAX_SENTINEL = "\U0010ffff" * 8


def _bound(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("utf-8")
    value = str(value)
    return value or None


@dataclass(frozen=True)
class RangeSpec:
    gt: str | None = None
    gte: str | None = None
    lt: str | None = None
    lte: str | None = None
    reverse: bool = False
    limit: int = -1

    @staticmethod
    def create(
        *,
        gt: Any = None,
        gte: Any = None,
        lt: Any = None,
        lte: Any = None,
        reverse: bool = False,
        limit: int | None = -1,
    ) -> RangeSpec:
        return RangeSpec(
            gt=_bound(gt),
            gte=_bound(gte),
            lt=_bound(lt),
            lte=_bound(lte),
            reverse=bool(reverse),
            limit=-1 if limit is None else int(limit),
        )

    @property
    def unbounded(self) -> bool:
        return self.limit < 0

    @property
    def lower(self) -> str | None:
        return self.gt if self.gt is not None else self.gte

    @property
    def upper(self) -> str | None:
        return self.lt if self.lt is not None else self.lte

    @property
    def exclusive_bounds(self) -> int:
        return int(self.gt is not None) + int(self.lt is not None)

    def accepts(self, key: str) -> bool:
        if self.gt is not None and not key > self.gt:
            return False
        if self.gt is None and self.gte is not None and not key >= self.gte:
            return False
        if self.lt is not None and not key < self.lt:
            return False
        if self.lt is None and self.lte is not None and not key <= self.lte:
            return False
        return True


@dataclass(frozen=True)
class QueryPlan:
    comparison_operator: ComparisonOperator
    bounds: tuple[str, ...]
    scan_forward: bool
    empty: bool = False

    def key_condition(self) -> dict[str, Any]:
        return {
            "ComparisonOperator": self.comparison_operator,
            "AttributeValueList": [{"S": b} for b in self.bounds],
        }


def plan_range(spec: RangeSpec) -> QueryPlan:
    """Translate a range into a sort-key condition for ``Query``.

    Exclusive bounds win over inclusive ones on the same side. When both sides
    are bounded the request always uses ``BETWEEN`` and the iterator drops the
    endpoints that were asked to be exclusive. Reversal only flips
    ``ScanIndexForward``; ``BETWEEN`` bounds stay in ascending order.
    """
    scan_forward = not spec.reverse
    lower, upper = spec.lower, spec.upper

    if lower is None:
        if upper is None:
            return QueryPlan("BETWEEN", (MIN_SENTINEL, MAX_SENTINEL), scan_forward)
        return QueryPlan("LT" if spec.lt is not None else "LE", (upper,), scan_forward)

    if upper is None:
        return QueryPlan("GT" if spec.gt is not None else "GE", (lower,), scan_forward)

    if lower > upper or (lower == upper and spec.exclusive_bounds):
        return QueryPlan("BETWEEN", (lower, upper), scan_forward, empty=True)

    return QueryPlan("BETWEEN", (lower, upper), scan_forward)
