from __future__ import annotations

import pytest

from dynamodown_py import AwsError, IteratorState, Store
from dynamodown_py.mocks import ANY, FakeDynamoDBClient, InMemoryDynamoDBClient, client_error


def _open(
    keys: list[str], *, page_size: int | None = None, location: str = "tbl"
) -> tuple[Store, InMemoryDynamoDBClient]:
    client = InMemoryDynamoDBClient(page_size=page_size)
    client.add_table(location.split("/")[0])
    db = Store(location, client=client).open(create_if_missing=False)
    for k in keys:
        db.put(k, f"v-{k}")
    client.calls.clear()
    return db, client


def _keys(it: object) -> list[str]:
    return [k for k, _ in it]  # type: ignore[attr-defined]


def test_exclusive_range_forward_and_reverse() -> None:
    db, _ = _open(["a", "b", "c", "d"])

    assert _keys(db.iterator(gt="a", lt="d", as_buffer=False)) == ["b", "c"]
    assert _keys(db.iterator(gt="a", lt="d", reverse=True, as_buffer=False)) == ["c", "b"]


def test_inclusive_ranges() -> None:
    db, _ = _open(["a", "b", "c", "d"])

    assert _keys(db.iterator(gte="b", lte="c", as_buffer=False)) == ["b", "c"]
    assert _keys(db.iterator(gte="b", lte="c", reverse=True, as_buffer=False)) == ["c", "b"]
    assert _keys(db.iterator(gte="b", as_buffer=False)) == ["b", "c", "d"]
    assert _keys(db.iterator(lte="b", reverse=True, as_buffer=False)) == ["b", "a"]
    assert _keys(db.iterator(gt="b", lte="d", as_buffer=False)) == ["c", "d"]


def test_full_scan_defaults_to_buffers_in_order() -> None:
    db, _ = _open(["b", "a", "c"])

    assert list(db.iterator()) == [(b"a", b"v-a"), (b"b", b"v-b"), (b"c", b"v-c")]
    assert list(db.iterator(key_as_buffer=False)) == [("a", b"v-a"), ("b", b"v-b"), ("c", b"v-c")]


def test_empty_range_issues_no_query() -> None:
    db, client = _open(["a", "b", "z"])

    it = db.iterator(gte="m", lte="b")
    assert it.state is IteratorState.DONE
    assert list(it) == []
    assert client.count("query") == 0
    assert it.pages_fetched == 0


def test_limit_zero_issues_no_query() -> None:
    db, client = _open(["a", "b"])

    assert list(db.iterator(limit=0)) == []
    assert client.count("query") == 0


@pytest.mark.parametrize("page_size", [None, 1, 2, 3])
def test_limit_is_exact_across_page_boundaries(page_size: int | None) -> None:
    db, _ = _open(["a", "b", "c", "d", "e"], page_size=page_size)

    assert _keys(db.iterator(limit=2, as_buffer=False)) == ["a", "b"]
    assert _keys(db.iterator(limit=2, reverse=True, as_buffer=False)) == ["e", "d"]


def test_limit_bounds_the_page_request() -> None:
    db, client = _open(["a", "b", "c", "d", "e"], page_size=1)

    assert _keys(db.iterator(limit=2, as_buffer=False)) == ["a", "b"]
    assert client.count("query") == 2
    assert [req["Limit"] for name, req in client.calls if name == "query"] == [1, 1]


def test_filtered_rows_do_not_count_towards_limit() -> None:
    db, client = _open(["a", "b", "c", "d", "e"])

    assert _keys(db.iterator(gt="a", lt="e", limit=2, as_buffer=False)) == ["b", "c"]
    assert client.count("query") == 1
    # One extra row is requested per exclusive bound.
    assert client.calls[0][1]["Limit"] == 4


def test_pages_are_followed_until_no_cursor() -> None:
    db, client = _open(["a", "b", "c", "d", "e"], page_size=2)

    assert _keys(db.iterator(as_buffer=False)) == ["a", "b", "c", "d", "e"]
    assert client.count("query") == 3

    client.calls.clear()
    db.delete("e")
    assert _keys(db.iterator(as_buffer=False)) == ["a", "b", "c", "d"]
    # The last full page carries a cursor, so one more (empty) page is read.
    assert client.count("query") == 3


def test_page_with_only_filtered_rows_keeps_paging() -> None:
    db, client = _open(["a", "b", "c"], page_size=1)

    assert _keys(db.iterator(gt="a", lt="c", as_buffer=False)) == ["b"]
    assert client.count("query") == 4


def test_pull_is_lazy() -> None:
    db, client = _open(["a", "b", "c"], page_size=2)

    it = db.iterator()
    assert it.state is IteratorState.FETCHING
    assert client.count("query") == 0

    next(it)
    assert it.state is IteratorState.DELIVERING
    assert client.count("query") == 1
    next(it)
    assert client.count("query") == 1
    next(it)
    assert client.count("query") == 2


def test_close_stops_further_requests() -> None:
    db, client = _open(["a", "b", "c", "d", "e"], page_size=2)

    it = db.iterator(as_buffer=False)
    assert next(it)[0] == "a"
    it.close()

    assert it.state is IteratorState.DONE
    assert list(it) == []
    assert client.count("query") == 1


def test_close_while_page_in_flight_discards_it() -> None:
    db, client = _open(["a", "b", "c", "d", "e"], page_size=2)
    it = db.iterator(as_buffer=False)

    def close_on_second_page(method: str, req: object) -> None:
        if method == "query" and "ExclusiveStartKey" in req:  # type: ignore[operator]
            it.close()

    client.before_call = close_on_second_page

    assert _keys(it) == ["a", "b"]
    assert client.count("query") == 2
    with pytest.raises(StopIteration):
        next(it)
    assert client.count("query") == 2


def test_context_manager_closes() -> None:
    db, client = _open(["a", "b", "c"], page_size=1)

    with db.iterator(as_buffer=False) as it:
        assert next(it)[0] == "a"
    assert it.state is IteratorState.DONE
    assert client.count("query") == 1


def test_missing_table_reads_as_empty() -> None:
    client = InMemoryDynamoDBClient()
    db = Store("missing", client=client).open(create_if_missing=False)

    it = db.iterator()
    assert list(it) == []
    assert it.state is IteratorState.DONE
    assert client.count("query") == 1


def test_transport_error_is_raised_and_sticky() -> None:
    db, client = _open(["a"])
    client.fail("query", client_error("ProvisionedThroughputExceededException", "slow down", "Query"))

    it = db.iterator()
    with pytest.raises(AwsError) as exc:
        next(it)
    assert exc.value.code == "ProvisionedThroughputExceededException"
    assert it.state is IteratorState.ERROR

    with pytest.raises(AwsError):
        next(it)
    it.close()
    assert it.state is IteratorState.ERROR
    assert client.count("query") == 1


def test_partitions_are_isolated() -> None:
    client = InMemoryDynamoDBClient()
    client.add_table("tbl")
    left = Store("tbl/left", client=client).open(create_if_missing=False)
    right = Store("tbl/right", client=client).open(create_if_missing=False)

    left.put("a", 1)
    right.put("b", 2)

    assert list(left.iterator(as_buffer=False)) == [("a", 1)]
    assert list(right.iterator(as_buffer=False)) == [("b", 2)]


def test_query_request_shape() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "query",
        {
            "TableName": "tbl",
            "KeyConditions": {
                "hkey": {"ComparisonOperator": "EQ", "AttributeValueList": [{"S": "p1"}]},
                "rkey": {"ComparisonOperator": "BETWEEN", "AttributeValueList": [{"S": "a"}, {"S": "d"}]},
            },
            "ScanIndexForward": False,
        },
        response={
            "Items": [
                {"hkey": {"S": "p1"}, "rkey": {"S": "d"}, "value": {"N": "4"}},
                {"hkey": {"S": "p1"}, "rkey": {"S": "c"}, "value": {"N": "3"}},
            ],
            "LastEvaluatedKey": {"hkey": {"S": "p1"}, "rkey": {"S": "c"}},
        },
    )
    client.expect(
        "query",
        {"ExclusiveStartKey": {"hkey": {"S": "p1"}, "rkey": {"S": "c"}}, "KeyConditions": ANY},
        response={
            "Items": [
                {"hkey": {"S": "p1"}, "rkey": {"S": "b"}, "value": {"N": "2"}},
                {"hkey": {"S": "p1"}, "rkey": {"S": "a"}, "value": {"N": "1"}},
            ],
        },
    )

    db = Store("tbl/p1", client=client).open(create_if_missing=False)
    got = list(db.iterator(gt="a", lt="d", reverse=True, as_buffer=False))

    assert got == [("c", 3), ("b", 2)]
    client.assert_no_pending()
    assert "Limit" not in client.calls[0][1]
    assert "ConsistentRead" not in client.calls[0][1]


def test_query_request_options() -> None:
    client = FakeDynamoDBClient()

    def check(req: object) -> None:
        assert req["ConsistentRead"] is True  # type: ignore[index]
        assert req["Limit"] == 3  # type: ignore[index]
        assert req["ScanIndexForward"] is True  # type: ignore[index]
        assert req["KeyConditions"]["rkey"]["ComparisonOperator"] == "GE"  # type: ignore[index]

    client.expect("query", check, response={"Items": []})

    db = Store("tbl", client=client).open(create_if_missing=False)
    assert list(db.iterator(gte="a", limit=5, page_size=3, consistent_read=True)) == []
    client.assert_no_pending()
