from __future__ import annotations

import enum
import logging
from collections import deque
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from .aws_errors import error_code, map_client_error
from .errors import ValidationError
from .query import QueryPlan, RangeSpec, plan_range
from .record import HASH_KEY_ATTR, RANGE_KEY_ATTR, from_item, item_sort_key

logger = logging.getLogger(__name__)


class IteratorState(enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DELIVERING = "delivering"
    DRAINING = "draining"
    DONE = "done"
    ERROR = "error"


class StoreIterator:
    """Pull-based, ordered view over the ``Query`` pages of one partition.

    A page is requested only when the consumer pulls and the buffer is empty.
    Rows that fall outside an exclusive bound are dropped before they are
    decoded and never count towards ``limit``. A missing table reads as an
    empty keyspace. Any other failure is raised on the pull that hit it and
    on every later pull.
    """

    def __init__(
        self,
        client: Any,
        *,
        table_name: str,
        partition_key: str,
        spec: RangeSpec,
        key_as_buffer: bool = True,
        value_as_buffer: bool = True,
        page_size: int | None = None,
        consistent_read: bool = False,
    ) -> None:
        if page_size is not None and page_size <= 0:
            raise ValidationError("page_size must be > 0")

        self._client = client
        self._table_name = table_name
        self._partition_key = partition_key
        self._spec = spec
        self._key_as_buffer = key_as_buffer
        self._value_as_buffer = value_as_buffer
        self._page_size = page_size
        self._consistent_read = consistent_read

        self._state = IteratorState.IDLE
        self._buffer: deque[tuple[Any, Any]] = deque()
        self._cursor: dict[str, Any] | None = None
        self._delivered = 0
        self._pages_fetched = 0
        self._error: BaseException | None = None

        self._plan: QueryPlan = plan_range(spec)
        if spec.limit == 0 or self._plan.empty:
            logger.debug("range on %s/%s is empty, no query issued", table_name, partition_key)
            self._state = IteratorState.DONE
        else:
            self._state = IteratorState.FETCHING

    @property
    def state(self) -> IteratorState:
        return self._state

    @property
    def plan(self) -> QueryPlan:
        return self._plan

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    def __iter__(self) -> StoreIterator:
        return self

    def __next__(self) -> tuple[Any, Any]:
        while True:
            if self._state is IteratorState.ERROR and self._error is not None:
                raise self._error
            if self._state in (IteratorState.DRAINING, IteratorState.DONE):
                raise StopIteration

            if self._buffer:
                pair = self._buffer.popleft()
                self._delivered += 1
                if self._limit_reached():
                    self._drain()
                return pair

            if self._state is IteratorState.DELIVERING:
                if self._cursor is None or self._limit_reached():
                    self._drain()
                    continue
                self._state = IteratorState.FETCHING

            self._fetch()

    def close(self) -> None:
        if self._state is IteratorState.ERROR:
            return
        self._buffer.clear()
        self._cursor = None
        self._state = IteratorState.DONE

    end = close

    def __enter__(self) -> StoreIterator:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _limit_reached(self) -> bool:
        return not self._spec.unbounded and self._delivered >= self._spec.limit

    def _drain(self) -> None:
        self._state = IteratorState.DRAINING
        self._buffer.clear()
        self._cursor = None
        self._state = IteratorState.DONE

    def _page_limit(self) -> int | None:
        if self._spec.unbounded:
            return self._page_size

        # Up to one row per exclusive bound can be filtered out of a page.
        want = self._spec.limit - self._delivered + self._spec.exclusive_bounds
        if self._page_size is not None:
            return min(want, self._page_size)
        return want

    def _build_request(self) -> dict[str, Any]:
        req: dict[str, Any] = {
            "TableName": self._table_name,
            "KeyConditions": {
                HASH_KEY_ATTR: {
                    "ComparisonOperator": "EQ",
                    "AttributeValueList": [{"S": self._partition_key}],
                },
                RANGE_KEY_ATTR: self._plan.key_condition(),
            },
            "ScanIndexForward": self._plan.scan_forward,
        }
        if self._consistent_read:
            req["ConsistentRead"] = True
        limit = self._page_limit()
        if limit is not None:
            req["Limit"] = limit
        if self._cursor is not None:
            req["ExclusiveStartKey"] = self._cursor
        return req

    def _fetch(self) -> None:
        req = self._build_request()
        self._pages_fetched += 1
        logger.debug(
            "query page %d on %s/%s (%s %s)",
            self._pages_fetched,
            self._table_name,
            self._partition_key,
            self._plan.comparison_operator,
            "forward" if self._plan.scan_forward else "reverse",
        )

        try:
            resp = self._client.query(**req)
        except ClientError as err:
            if error_code(err) == "ResourceNotFoundException":
                logger.debug("table %s not found, treating scan as empty", self._table_name)
                self._drain()
                return
            self._error = map_client_error(err)
            self._state = IteratorState.ERROR
            raise self._error from err
        except BotoCoreError as err:
            self._error = err
            self._state = IteratorState.ERROR
            raise

        if self._state is not IteratorState.FETCHING:
            # Closed while the request was in flight.
            return

        last = resp.get("LastEvaluatedKey")
        self._cursor = dict(last) if last else None

        for item in resp.get("Items", []) or []:
            if not self._spec.accepts(item_sort_key(item)):
                continue
            self._buffer.append(
                from_item(item, key_as_buffer=self._key_as_buffer, value_as_buffer=self._value_as_buffer)
            )

        self._state = IteratorState.DELIVERING
