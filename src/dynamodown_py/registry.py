from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from typing import Any

from .errors import NotFoundError, ValidationError
from .schema import delete_table
from .store import Store

logger = logging.getLogger(__name__)


class StoreRegistry:
    """Stores opened with ``registry=...``, keyed by location.

    ``Store.open`` inserts; ``destroy`` and ``remove`` take the entry out.
    Each entry keeps the client the store was opened with, so a store can be
    destroyed after it has been closed. Registries are plain objects: each
    owner of table lifecycle keeps its own.
    """

    def __init__(self) -> None:
        self._stores: dict[str, Store] = {}
        self._clients: dict[str, Any] = {}

    def register(self, store: Store, *, client: Any | None = None) -> None:
        existing = self._stores.get(store.location)
        if existing is not None and existing is not store:
            raise ValidationError(f"location already registered: {store.location}")
        self._stores[store.location] = store
        self._clients[store.location] = client if client is not None else store.client

    def get(self, location: str) -> Store:
        try:
            return self._stores[location]
        except KeyError:
            raise NotFoundError(f"no store registered for {location!r}") from None

    def remove(self, location: str) -> Store | None:
        self._clients.pop(location, None)
        return self._stores.pop(location, None)

    def __contains__(self, location: object) -> bool:
        return location in self._stores

    def __len__(self) -> int:
        return len(self._stores)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._stores))

    def destroy(
        self,
        location: str,
        *,
        client: Any | None = None,
        wait_for_delete: bool = True,
        ignore_missing: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Delete the table behind ``location`` and close the stores on it.

        The table is shared by every partition, so all stores registered on
        the same table are closed and removed once the delete succeeds. When
        it fails the registry is left unchanged and ``destroy`` can be retried.
        """
        store = self.get(location)
        table_client = client if client is not None else self._clients[location]

        logger.info("destroying table %s (location %s)", store.table_name, location)
        delete_table(
            table_client,
            store.table_name,
            wait_for_delete=wait_for_delete,
            ignore_missing=ignore_missing,
            sleep=sleep,
        )

        for sibling in [s for s in self._stores.values() if s.table_name == store.table_name]:
            sibling.close()
            self.remove(sibling.location)
