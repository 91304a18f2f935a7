"""Key-value storage capability.

Every persisted value lives under a (collection, key) pair and must be
JSON-compatible. Backends are interchangeable; the in-memory store is the
default for local runs and tests.
"""

import copy
import json
import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

SETTINGS_COLLECTION = "settings"
HUB_COLLECTION = "notification_hub"


@runtime_checkable
class KeyValueStore(Protocol):
    """Async key-value storage grouped by collection name."""

    async def get(self, collection: str, key: str) -> Any | None:
        """Return the stored value or None."""
        ...

    async def put(self, collection: str, key: str, value: Any) -> None:
        """Insert or replace a value."""
        ...

    async def delete(self, collection: str, key: str) -> None:
        """Remove a value. Missing keys are ignored."""
        ...

    async def scan(self, collection: str) -> dict[str, Any]:
        """Return every key/value pair in a collection."""
        ...

    async def keys(self, collection: str) -> list[str]:
        """Return every key in a collection."""
        ...


class InMemoryKeyValueStore:
    """Process-local store. Values are round-tripped through JSON on write."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    async def get(self, collection: str, key: str) -> Any | None:
        value = self._data.get(collection, {}).get(key)
        return copy.deepcopy(value)

    async def put(self, collection: str, key: str, value: Any) -> None:
        self._data.setdefault(collection, {})[key] = json.loads(
            json.dumps(value, default=str)
        )

    async def delete(self, collection: str, key: str) -> None:
        self._data.get(collection, {}).pop(key, None)

    async def scan(self, collection: str) -> dict[str, Any]:
        return copy.deepcopy(self._data.get(collection, {}))

    async def keys(self, collection: str) -> list[str]:
        return list(self._data.get(collection, {}).keys())
