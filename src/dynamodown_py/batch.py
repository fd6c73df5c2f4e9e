from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .errors import BatchRetryExceededError, ValidationError
from .record import key_to_str, to_item, to_key

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 25

OpType: TypeAlias = Literal["put", "del"]


@dataclass(frozen=True)
class BatchOp:
    type: OpType
    key: Any
    value: Any = None

    @staticmethod
    def put(key: Any, value: Any) -> BatchOp:
        return BatchOp(type="put", key=key, value=value)

    @staticmethod
    def delete(key: Any) -> BatchOp:
        return BatchOp(type="del", key=key)

    @staticmethod
    def coerce(op: BatchOp | Mapping[str, Any]) -> BatchOp:
        if isinstance(op, BatchOp):
            out = op
        elif isinstance(op, Mapping):
            out = BatchOp(
                type=op.get("type"),  # type: ignore[arg-type]
                key=op.get("key"),
                value=op.get("value"),
            )
        else:
            raise ValidationError(f"batch operation must be a BatchOp or mapping, got {type(op).__name__}")

        if out.type not in ("put", "del"):
            raise ValidationError(f"unsupported batch operation type: {out.type!r}")
        return out


def dedupe_ops(ops: Iterable[BatchOp | Mapping[str, Any]]) -> list[BatchOp]:
    """Keep only the last operation per key.

    The surviving operation takes the position of its last occurrence; earlier
    occurrences leave no trace regardless of their type.
    """
    by_key: dict[str, BatchOp] = {}
    for raw in ops:
        op = BatchOp.coerce(raw)
        key = key_to_str(op.key)
        by_key.pop(key, None)
        by_key[key] = op
    return list(by_key.values())


class BatchWriter:
    def __init__(self, client: Any, *, table_name: str, partition_key: str) -> None:
        self._client = client
        self._table_name = table_name
        self._partition_key = partition_key

    def build_requests(
        self, ops: Iterable[BatchOp | Mapping[str, Any]], *, as_buffer: bool = True
    ) -> list[dict[str, Any]]:
        requests: list[dict[str, Any]] = []
        for op in dedupe_ops(ops):
            if op.type == "del":
                requests.append({"DeleteRequest": {"Key": to_key(self._partition_key, op.key)}})
            else:
                item = to_item(self._partition_key, op.key, op.value, as_buffer=as_buffer)
                requests.append({"PutRequest": {"Item": item}})
        return requests

    def write(
        self,
        ops: Iterable[BatchOp | Mapping[str, Any]],
        *,
        as_buffer: bool = True,
        max_retries: int | None = None,
    ) -> int:
        """Apply ``ops`` and return the number of ``BatchWriteItem`` calls made.

        Chunks go out one at a time. Items reported back as unprocessed lead the
        next request, which then carries fewer new items, so no request ever
        exceeds ``MAX_BATCH_SIZE``.
        """
        if max_retries is not None and max_retries < 0:
            raise ValidationError("max_retries must be >= 0")

        pending = self.build_requests(ops, as_buffer=as_buffer)
        unprocessed: list[dict[str, Any]] = []
        calls = 0
        retries = 0

        while True:
            room = max(0, MAX_BATCH_SIZE - len(unprocessed))
            reqs = unprocessed + pending[:room]
            del pending[:room]
            if not reqs:
                return calls

            calls += 1
            logger.debug(
                "batch_write_item %d on %s: %d requests (%d resubmitted)",
                calls,
                self._table_name,
                len(reqs),
                len(unprocessed),
            )
            try:
                resp = self._client.batch_write_item(RequestItems={self._table_name: reqs})
            except ClientError as err:
                raise map_client_error(err) from err

            unprocessed = list((resp.get("UnprocessedItems") or {}).get(self._table_name) or [])
            if unprocessed:
                if max_retries is not None and retries >= max_retries:
                    raise BatchRetryExceededError(operation="batch_write", unprocessed_count=len(unprocessed))
                retries += 1
                logger.warning(
                    "%d unprocessed items on %s, resubmitting", len(unprocessed), self._table_name
                )


class ChainedBatch:
    """Builder that collects operations and applies them with one ``write``."""

    def __init__(self, write: Callable[[Sequence[BatchOp]], None]) -> None:
        self._write = write
        self._ops: list[BatchOp] = []
        self._written = False

    def put(self, key: Any, value: Any) -> ChainedBatch:
        self._check_not_written()
        key_to_str(key)
        self._ops.append(BatchOp.put(key, value))
        return self

    def delete(self, key: Any) -> ChainedBatch:
        self._check_not_written()
        key_to_str(key)
        self._ops.append(BatchOp.delete(key))
        return self

    del_ = delete

    def clear(self) -> ChainedBatch:
        self._check_not_written()
        self._ops.clear()
        return self

    def write(self) -> None:
        self._check_not_written()
        self._written = True
        self._write(list(self._ops))

    @property
    def ops(self) -> tuple[BatchOp, ...]:
        return tuple(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def __enter__(self) -> ChainedBatch:
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        if exc_type is None and not self._written:
            self.write()

    def _check_not_written(self) -> None:
        if self._written:
            raise ValidationError("write() already called on this batch")
