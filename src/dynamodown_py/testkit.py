from __future__ import annotations

from .mocks import ANY, FakeDynamoDBClient, InMemoryDynamoDBClient, client_error


def no_sleep(_: float) -> None:
    return None


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "InMemoryDynamoDBClient",
    "client_error",
    "no_sleep",
]
