from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .batch import MAX_BATCH_SIZE, BatchOp, BatchWriter, ChainedBatch, dedupe_ops
from .codec import TaggedValue, decode, encode
from .errors import (
    AwsError,
    BatchRetryExceededError,
    DecodeError,
    DynamodownPyError,
    NotFoundError,
    ResourceNotFoundError,
    TableExistsError,
    UnsupportedTypeError,
    ValidationError,
)
from .iterator import IteratorState, StoreIterator
from .query import MAX_SENTINEL, MIN_SENTINEL, QueryPlan, RangeSpec, plan_range
from .record import Record
from .runtime import AwsCallMetric, create_boto3_config, create_dynamodb_client, instrument_boto3_client
from .schema import build_create_table_request, create_table, delete_table, describe_table
from .store import DEFAULT_PARTITION, LOCATION_DELIMITER, Store, parse_location

if TYPE_CHECKING:
    from .registry import StoreRegistry


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "StoreRegistry":
        from .registry import StoreRegistry

        return StoreRegistry
    raise AttributeError(name)


__all__ = [
    "AwsCallMetric",
    "AwsError",
    "BatchOp",
    "BatchRetryExceededError",
    "BatchWriter",
    "build_create_table_request",
    "ChainedBatch",
    "create_boto3_config",
    "create_dynamodb_client",
    "create_table",
    "decode",
    "DecodeError",
    "dedupe_ops",
    "DEFAULT_PARTITION",
    "delete_table",
    "describe_table",
    "DynamodownPyError",
    "encode",
    "instrument_boto3_client",
    "IteratorState",
    "LOCATION_DELIMITER",
    "MAX_BATCH_SIZE",
    "MAX_SENTINEL",
    "MIN_SENTINEL",
    "NotFoundError",
    "parse_location",
    "plan_range",
    "QueryPlan",
    "RangeSpec",
    "Record",
    "ResourceNotFoundError",
    "Store",
    "StoreIterator",
    "StoreRegistry",
    "TableExistsError",
    "TaggedValue",
    "UnsupportedTypeError",
    "ValidationError",
    "__repo_version__",
    "__version__",
]
