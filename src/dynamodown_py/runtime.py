from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

DYNAMODB_API_VERSION = "2012-08-10"


@dataclass(frozen=True)
class AwsCallMetric:
    """One client call: which operation ran, how long it took, whether it raised."""

    service: str
    operation: str
    seconds: float
    ok: bool


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
    retry_mode: str = "adaptive",
) -> Config:
    # Throttling and transient errors are retried here, below the store.
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": retry_mode},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def _report(self, operation: str, started: float, ok: bool) -> None:
        seconds = time.monotonic() - started
        self._on_call(AwsCallMetric(service=self._service, operation=operation, seconds=seconds, ok=ok))

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def timed(*args: Any, **kwargs: Any) -> Any:
            started = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                self._report(name, started, ok)

        return timed


def instrument_boto3_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    """Wrap ``client`` so every public method call is reported to ``on_call``."""
    return _InstrumentedClient(client, service, on_call)


def create_dynamodb_client(
    options: Mapping[str, Any] | None = None,
    *,
    config: Config | None = None,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    """Build a low-level DynamoDB client.

    ``options`` are forwarded to ``Session.client`` (``region_name``,
    ``endpoint_url``, ``aws_access_key_id`` and so on). Anything left out is
    resolved by boto3 from the environment.
    """
    kwargs: dict[str, Any] = {"api_version": DYNAMODB_API_VERSION}
    kwargs.update(options or {})
    if config is not None:
        kwargs["config"] = config

    sess = session or boto3.session.Session()
    client = cast(Any, sess).client("dynamodb", **kwargs)
    if metrics is not None:
        client = instrument_boto3_client(client, service="dynamodb", on_call=metrics)
    return client
