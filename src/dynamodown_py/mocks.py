from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeAlias

from botocore.exceptions import ClientError


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()

RequestCheck: TypeAlias = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]


def _mismatch(path: str, what: str) -> AssertionError:
    return AssertionError(f"{path}: {what}")


def _assert_match(expected: Any, actual: Any, *, path: str) -> None:
    """Check ``actual`` against ``expected``; dict keys not in ``expected`` are ignored."""
    if expected is ANY:
        return

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            raise _mismatch(path, f"expected dict, got {type(actual).__name__}")
        missing = [k for k in expected if k not in actual]
        if missing:
            raise _mismatch(path, f"missing key {missing[0]!r}")
        for k, v in expected.items():
            _assert_match(v, actual[k], path=f"{path}.{k}")
    elif isinstance(expected, list):
        if not isinstance(actual, list) or len(actual) != len(expected):
            raise _mismatch(path, f"expected {expected!r}, got {actual!r}")
        for i, (e, a) in enumerate(zip(expected, actual, strict=True)):
            _assert_match(e, a, path=f"{path}[{i}]")
    elif expected != actual:
        raise _mismatch(path, f"expected {expected!r}, got {actual!r}")


def client_error(code: str, message: str = "", operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


@dataclass(frozen=True)
class ExpectedCall:
    method: str
    check: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None

    def verify(self, method: str, req: dict[str, Any]) -> None:
        if method != self.method:
            raise AssertionError(f"expected {self.method}, got {method}")
        if callable(self.check):
            self.check(req)
        elif self.check is not None:
            _assert_match(dict(self.check), req, path=method)


class FakeDynamoDBClient:
    """Scripted client: every call must match the next ``expect``-ed one.

    Requests are recorded in ``calls`` before they are checked, so a failing
    expectation still leaves the offending request visible.
    """

    def __init__(self) -> None:
        self._script: list[ExpectedCall] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        expected: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._script.append(ExpectedCall(method=method, check=expected, response=response, error=error))

    def assert_no_pending(self) -> None:
        if self._script:
            pending = ", ".join(call.method for call in self._script)
            raise AssertionError(f"pending expected calls: {pending}")

    def _handle(self, method: str, req: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((method, dict(req)))
        if not self._script:
            raise AssertionError(f"unexpected call: {method}")

        call = self._script.pop(0)
        call.verify(method, req)
        if call.error is not None:
            raise call.error
        return dict(call.response or {})

    def put_item(self, **req: Any) -> dict[str, Any]:
        return self._handle("put_item", req)

    def get_item(self, **req: Any) -> dict[str, Any]:
        return self._handle("get_item", req)

    def delete_item(self, **req: Any) -> dict[str, Any]:
        return self._handle("delete_item", req)

    def query(self, **req: Any) -> dict[str, Any]:
        return self._handle("query", req)

    def batch_write_item(self, **req: Any) -> dict[str, Any]:
        return self._handle("batch_write_item", req)

    def create_table(self, **req: Any) -> dict[str, Any]:
        return self._handle("create_table", req)

    def delete_table(self, **req: Any) -> dict[str, Any]:
        return self._handle("delete_table", req)

    def describe_table(self, **req: Any) -> dict[str, Any]:
        return self._handle("describe_table", req)


_COMPARATORS: dict[str, Callable[[bytes, list[bytes]], bool]] = {
    "EQ": lambda k, b: k == b[0],
    "LT": lambda k, b: k < b[0],
    "LE": lambda k, b: k <= b[0],
    "GT": lambda k, b: k > b[0],
    "GE": lambda k, b: k >= b[0],
    "BETWEEN": lambda k, b: b[0] <= k <= b[1],
}


def _utf8(value: str) -> bytes:
    return value.encode("utf-8")


def _matches(op: str, key: str, bounds: list[str]) -> bool:
    compare = _COMPARATORS.get(op)
    if compare is None:
        raise client_error("ValidationException", f"unsupported ComparisonOperator: {op}", "Query")
    return compare(_utf8(key), [_utf8(v) for v in bounds])


class InMemoryDynamoDBClient:
    """Small in-process stand-in for a ``hkey``/``rkey`` DynamoDB table.

    It orders sort keys by UTF-8 bytes, pages ``Query`` results at
    ``page_size`` (or ``Limit``) and, like DynamoDB, returns a
    ``LastEvaluatedKey`` whenever a page was cut short by its limit.
    ``unprocessed`` scripts how many trailing items each ``batch_write_item``
    call leaves unprocessed; ``fail`` injects one error for the next call of
    a method; ``before_call`` runs before every call.
    """

    def __init__(self, *, page_size: int | None = None) -> None:
        self.page_size = page_size
        self.tables: dict[str, dict[tuple[str, str], dict[str, Any]]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.unprocessed: list[int] = []
        self.before_call: Callable[[str, Mapping[str, Any]], None] | None = None
        self._failures: dict[str, list[Exception]] = {}

    def fail(self, method: str, error: Exception) -> None:
        self._failures.setdefault(method, []).append(error)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def add_table(self, table_name: str) -> None:
        self.tables.setdefault(table_name, {})

    def _record(self, method: str, req: dict[str, Any]) -> None:
        self.calls.append((method, dict(req)))
        if self.before_call is not None:
            self.before_call(method, req)
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    def _table(self, table_name: str, operation: str) -> dict[tuple[str, str], dict[str, Any]]:
        table = self.tables.get(table_name)
        if table is None:
            raise client_error("ResourceNotFoundException", "Requested resource not found", operation)
        return table

    @staticmethod
    def _key(item: Mapping[str, Any]) -> tuple[str, str]:
        return str(item["hkey"]["S"]), str(item["rkey"]["S"])

    def create_table(self, **req: Any) -> dict[str, Any]:
        self._record("create_table", req)
        name = req["TableName"]
        if name in self.tables:
            raise client_error("ResourceInUseException", f"Table already exists: {name}", "CreateTable")
        self.tables[name] = {}
        return {"TableDescription": {"TableName": name, "TableStatus": "CREATING"}}

    def describe_table(self, **req: Any) -> dict[str, Any]:
        self._record("describe_table", req)
        name = req["TableName"]
        self._table(name, "DescribeTable")
        return {"Table": {"TableName": name, "TableStatus": "ACTIVE"}}

    def delete_table(self, **req: Any) -> dict[str, Any]:
        self._record("delete_table", req)
        name = req["TableName"]
        self._table(name, "DeleteTable")
        del self.tables[name]
        return {"TableDescription": {"TableName": name, "TableStatus": "DELETING"}}

    def put_item(self, **req: Any) -> dict[str, Any]:
        self._record("put_item", req)
        table = self._table(req["TableName"], "PutItem")
        item = dict(req["Item"])
        table[self._key(item)] = item
        return {}

    def get_item(self, **req: Any) -> dict[str, Any]:
        self._record("get_item", req)
        table = self._table(req["TableName"], "GetItem")
        item = table.get(self._key(req["Key"]))
        return {"Item": dict(item)} if item is not None else {}

    def delete_item(self, **req: Any) -> dict[str, Any]:
        self._record("delete_item", req)
        table = self._table(req["TableName"], "DeleteItem")
        table.pop(self._key(req["Key"]), None)
        return {}

    def query(self, **req: Any) -> dict[str, Any]:
        self._record("query", req)
        table = self._table(req["TableName"], "Query")

        conditions = req["KeyConditions"]
        hkey_cond = conditions["hkey"]
        partition = hkey_cond["AttributeValueList"][0]["S"]
        rkey_cond = conditions.get("rkey")

        rows = [item for (h, _), item in table.items() if h == partition]
        if rkey_cond is not None:
            op = rkey_cond["ComparisonOperator"]
            bounds = [av["S"] for av in rkey_cond["AttributeValueList"]]
            if op == "BETWEEN" and _utf8(bounds[0]) > _utf8(bounds[1]):
                raise client_error(
                    "ValidationException",
                    "Invalid KeyConditionExpression: The BETWEEN operator requires upper bound to be "
                    "greater than or equal to lower bound",
                    "Query",
                )
            rows = [item for item in rows if _matches(op, item["rkey"]["S"], bounds)]

        forward = req.get("ScanIndexForward", True)
        rows.sort(key=lambda item: _utf8(item["rkey"]["S"]), reverse=not forward)

        start = req.get("ExclusiveStartKey")
        if start:
            start_key = _utf8(start["rkey"]["S"])
            if forward:
                rows = [item for item in rows if _utf8(item["rkey"]["S"]) > start_key]
            else:
                rows = [item for item in rows if _utf8(item["rkey"]["S"]) < start_key]

        limits = [n for n in (req.get("Limit"), self.page_size) if n is not None]
        cut = min(limits) if limits else None

        out: dict[str, Any] = {}
        if cut is not None and len(rows) >= cut:
            page = rows[:cut]
            if page:
                out["LastEvaluatedKey"] = {"hkey": dict(page[-1]["hkey"]), "rkey": dict(page[-1]["rkey"])}
        else:
            page = rows

        out["Items"] = [dict(item) for item in page]
        out["Count"] = len(page)
        return out

    def batch_write_item(self, **req: Any) -> dict[str, Any]:
        self._record("batch_write_item", req)
        request_items = req["RequestItems"]
        unprocessed: dict[str, list[dict[str, Any]]] = {}

        for table_name, requests in request_items.items():
            table = self._table(table_name, "BatchWriteItem")
            if len(requests) > 25:
                raise client_error(
                    "ValidationException",
                    "Too many items requested for the BatchWriteItem call",
                    "BatchWriteItem",
                )

            keys = [
                self._key(r["PutRequest"]["Item"] if "PutRequest" in r else r["DeleteRequest"]["Key"])
                for r in requests
            ]
            if len(set(keys)) != len(keys):
                raise client_error(
                    "ValidationException",
                    "Provided list of item keys contains duplicates",
                    "BatchWriteItem",
                )

            skip = self.unprocessed.pop(0) if self.unprocessed else 0
            skip = min(skip, len(requests))
            accepted = requests[: len(requests) - skip]
            if skip:
                unprocessed[table_name] = list(requests[len(requests) - skip :])

            for r in accepted:
                if "PutRequest" in r:
                    item = dict(r["PutRequest"]["Item"])
                    table[self._key(item)] = item
                else:
                    table.pop(self._key(r["DeleteRequest"]["Key"]), None)

        return {"UnprocessedItems": unprocessed}
