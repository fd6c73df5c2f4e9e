from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from botocore.config import Config
from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .batch import BatchOp, BatchWriter, ChainedBatch
from .codec import decode
from .errors import NotFoundError, TableExistsError, ValidationError
from .iterator import StoreIterator
from .query import RangeSpec
from .record import VALUE_ATTR, to_item, to_key
from .runtime import AwsCallMetric, create_dynamodb_client
from .schema import BillingMode, create_table

if TYPE_CHECKING:
    from .registry import StoreRegistry

logger = logging.getLogger(__name__)

LOCATION_DELIMITER = "/"
DEFAULT_PARTITION = "!"


def parse_location(location: str) -> tuple[str, str]:
    """Split ``"table"`` or ``"table/partition"`` into its two parts."""
    if not isinstance(location, str) or not location:
        raise ValidationError("location must be a non-empty string")

    parts = location.split(LOCATION_DELIMITER)
    table_name = parts[0]
    if not table_name:
        raise ValidationError(f"location has no table name: {location!r}")
    partition_key = parts[1] if len(parts) > 1 and parts[1] else DEFAULT_PARTITION
    return table_name, partition_key


class Store:
    """Ordered key-value store over one partition of a DynamoDB table.

    Every row of the table lives under ``hkey = partition`` and
    ``rkey = key``; several stores can share a table by using different
    partitions.
    """

    def __init__(self, location: str, *, client: Any | None = None) -> None:
        self._location = location
        self._table_name, self._partition_key = parse_location(location)
        self._injected_client: Any | None = client
        self._client: Any | None = None

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"Store({self._location!r}, {state})"

    @property
    def location(self) -> str:
        return self._location

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def partition_key(self) -> str:
        return self._partition_key

    @property
    def is_open(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> Any:
        return self._require_client()

    def open(
        self,
        *,
        create_if_missing: bool = True,
        error_if_exists: bool = False,
        dynamodb: Mapping[str, Any] | None = None,
        config: Config | None = None,
        metrics: Callable[[AwsCallMetric], None] | None = None,
        billing_mode: BillingMode = "PROVISIONED",
        provisioned_throughput: dict[str, int] | None = None,
        wait_for_active: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        registry: StoreRegistry | None = None,
    ) -> Store:
        if self.is_open:
            raise ValidationError("store is already open")

        client = self._injected_client
        if client is None:
            client = create_dynamodb_client(dynamodb, config=config, metrics=metrics)

        if create_if_missing:
            created = create_table(
                client,
                self._table_name,
                billing_mode=billing_mode,
                provisioned_throughput=provisioned_throughput,
                wait_for_active=wait_for_active,
                sleep=sleep,
            )
            if not created and error_if_exists:
                raise TableExistsError(self._table_name)

        if registry is not None:
            registry.register(self, client=client)
        self._client = client
        logger.debug("opened %r", self)
        return self

    def close(self) -> None:
        self._client = None

    def __enter__(self) -> Store:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get(self, key: Any, *, as_buffer: bool = True, consistent_read: bool = False) -> Any:
        client = self._require_client()
        req: dict[str, Any] = {"TableName": self._table_name, "Key": to_key(self._partition_key, key)}
        if consistent_read:
            req["ConsistentRead"] = True

        try:
            resp = client.get_item(**req)
        except ClientError as err:
            raise map_client_error(err) from err

        item = resp.get("Item")
        if not item or VALUE_ATTR not in item:
            raise NotFoundError("NotFound")
        return decode(item[VALUE_ATTR], as_buffer=as_buffer)

    def put(self, key: Any, value: Any, *, as_buffer: bool = True) -> None:
        client = self._require_client()
        item = to_item(self._partition_key, key, value, as_buffer=as_buffer)
        try:
            client.put_item(TableName=self._table_name, Item=item)
        except ClientError as err:
            raise map_client_error(err) from err

    def delete(self, key: Any) -> None:
        client = self._require_client()
        try:
            client.delete_item(TableName=self._table_name, Key=to_key(self._partition_key, key))
        except ClientError as err:
            raise map_client_error(err) from err

    def batch(
        self,
        ops: Iterable[BatchOp | Mapping[str, Any]] | None = None,
        *,
        as_buffer: bool = True,
        max_retries: int | None = None,
    ) -> ChainedBatch | None:
        """Apply ``ops``, or return a chained batch when called without them."""
        if ops is None:
            self._require_client()

            def write(collected: Iterable[BatchOp]) -> None:
                self._writer().write(collected, as_buffer=as_buffer, max_retries=max_retries)

            return ChainedBatch(write)

        self._writer().write(ops, as_buffer=as_buffer, max_retries=max_retries)
        return None

    def iterator(
        self,
        *,
        gt: Any = None,
        gte: Any = None,
        lt: Any = None,
        lte: Any = None,
        reverse: bool = False,
        limit: int | None = -1,
        as_buffer: bool = True,
        key_as_buffer: bool | None = None,
        value_as_buffer: bool | None = None,
        page_size: int | None = None,
        consistent_read: bool = False,
    ) -> StoreIterator:
        spec = RangeSpec.create(gt=gt, gte=gte, lt=lt, lte=lte, reverse=reverse, limit=limit)
        return StoreIterator(
            self._require_client(),
            table_name=self._table_name,
            partition_key=self._partition_key,
            spec=spec,
            key_as_buffer=as_buffer if key_as_buffer is None else key_as_buffer,
            value_as_buffer=as_buffer if value_as_buffer is None else value_as_buffer,
            page_size=page_size,
            consistent_read=consistent_read,
        )

    def _writer(self) -> BatchWriter:
        return BatchWriter(
            self._require_client(),
            table_name=self._table_name,
            partition_key=self._partition_key,
        )

    def _require_client(self) -> Any:
        if self._client is None:
            raise ValidationError("store is not open")
        return self._client
