from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from botocore.exceptions import ClientError

from .aws_errors import error_code, map_client_error
from .errors import ValidationError
from .record import HASH_KEY_ATTR, RANGE_KEY_ATTR

logger = logging.getLogger(__name__)

BillingMode = str  # "PAY_PER_REQUEST" | "PROVISIONED"

DEFAULT_PROVISIONED_THROUGHPUT = {"ReadCapacityUnits": 1, "WriteCapacityUnits": 1}


def build_create_table_request(
    table_name: str,
    *,
    billing_mode: BillingMode = "PROVISIONED",
    provisioned_throughput: dict[str, int] | None = None,
) -> dict[str, Any]:
    if not table_name:
        raise ValidationError("table_name is required")

    billing_mode = (billing_mode or "PROVISIONED").strip() or "PROVISIONED"
    if billing_mode not in {"PAY_PER_REQUEST", "PROVISIONED"}:
        raise ValidationError(f"unsupported billing_mode: {billing_mode}")

    req: dict[str, Any] = {
        "TableName": table_name,
        "BillingMode": billing_mode,
        "KeySchema": [
            {"AttributeName": HASH_KEY_ATTR, "KeyType": "HASH"},
            {"AttributeName": RANGE_KEY_ATTR, "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": HASH_KEY_ATTR, "AttributeType": "S"},
            {"AttributeName": RANGE_KEY_ATTR, "AttributeType": "S"},
        ],
    }
    if billing_mode == "PROVISIONED":
        req["ProvisionedThroughput"] = dict(provisioned_throughput or DEFAULT_PROVISIONED_THROUGHPUT)
    return req


def create_table(
    client: Any,
    table_name: str,
    *,
    billing_mode: BillingMode = "PROVISIONED",
    provisioned_throughput: dict[str, int] | None = None,
    wait_for_active: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Create the backing table; return False when it already existed."""
    req = build_create_table_request(
        table_name,
        billing_mode=billing_mode,
        provisioned_throughput=provisioned_throughput,
    )

    created = True
    try:
        client.create_table(**req)
        logger.info("created table %s", table_name)
    except ClientError as err:
        if error_code(err) != "ResourceInUseException":
            raise map_client_error(err) from err
        created = False

    if wait_for_active:
        wait_for_table_active(
            client,
            table_name,
            timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )
    return created


def delete_table(
    client: Any,
    table_name: str,
    *,
    wait_for_delete: bool = True,
    wait_timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    ignore_missing: bool = False,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    try:
        client.delete_table(TableName=table_name)
        logger.info("deleted table %s", table_name)
    except ClientError as err:
        if ignore_missing and error_code(err) == "ResourceNotFoundException":
            return
        raise map_client_error(err) from err

    if wait_for_delete:
        wait_for_table_deleted(
            client,
            table_name,
            timeout_seconds=wait_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )


def describe_table(client: Any, table_name: str) -> dict[str, Any]:
    try:
        return dict(client.describe_table(TableName=table_name))
    except ClientError as err:
        raise map_client_error(err) from err


def wait_for_table_active(
    client: Any,
    table_name: str,
    *,
    timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            resp = client.describe_table(TableName=table_name)
        except ClientError as err:
            if error_code(err) != "ResourceNotFoundException":
                raise map_client_error(err) from err
            resp = {}

        status = str(resp.get("Table", {}).get("TableStatus", ""))
        if status == "ACTIVE":
            return
        logger.debug("waiting for table %s to become ACTIVE (status=%s)", table_name, status or "missing")
        sleep(poll_interval_seconds)

    raise ValidationError(f"timed out waiting for table ACTIVE: {table_name}")


def wait_for_table_deleted(
    client: Any,
    table_name: str,
    *,
    timeout_seconds: float = 300.0,
    poll_interval_seconds: float = 0.25,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            client.describe_table(TableName=table_name)
        except ClientError as err:
            if error_code(err) == "ResourceNotFoundException":
                return
            raise map_client_error(err) from err
        sleep(poll_interval_seconds)

    raise ValidationError(f"timed out waiting for table deletion: {table_name}")
