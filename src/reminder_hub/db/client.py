"""Supabase-backed key-value store."""

import logging
import time
from typing import Any

from supabase import Client, create_client

from reminder_hub.config import get_settings
from reminder_hub.exceptions import StorageError

logger = logging.getLogger(__name__)


class SupabaseKeyValueStore:
    """Key-value store on a single Supabase table.

    Expected schema::

        create table kv_store (
            collection text not null,
            key text not null,
            value jsonb,
            primary key (collection, key)
        );
    """

    def __init__(self, client: Client | None = None, table: str | None = None) -> None:
        settings = get_settings()
        if client is None:
            if not settings.supabase_url or not settings.supabase_key:
                raise StorageError(
                    "connect", "*", "SUPABASE_URL and SUPABASE_KEY must be set"
                )
            client = create_client(settings.supabase_url, settings.supabase_key)
        self.client: Client = client
        self.table = table or settings.supabase_table

    async def get(self, collection: str, key: str) -> Any | None:
        try:
            result = (
                self.client.table(self.table)
                .select("value")
                .eq("collection", collection)
                .eq("key", key)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise StorageError("get", collection, str(e)) from e
        if not result.data:
            return None
        return result.data[0]["value"]

    async def put(self, collection: str, key: str, value: Any) -> None:
        data = {"collection": collection, "key": key, "value": value}
        try:
            self.client.table(self.table).upsert(
                data, on_conflict="collection,key"
            ).execute()
        except Exception as e:
            raise StorageError("put", collection, str(e)) from e
        logger.debug(f"Stored {collection}/{key}")

    async def delete(self, collection: str, key: str) -> None:
        try:
            self.client.table(self.table).delete().eq("collection", collection).eq(
                "key", key
            ).execute()
        except Exception as e:
            raise StorageError("delete", collection, str(e)) from e

    async def scan(self, collection: str) -> dict[str, Any]:
        try:
            result = (
                self.client.table(self.table)
                .select("key, value")
                .eq("collection", collection)
                .execute()
            )
        except Exception as e:
            raise StorageError("scan", collection, str(e)) from e
        return {row["key"]: row["value"] for row in result.data or []}

    async def keys(self, collection: str) -> list[str]:
        try:
            result = (
                self.client.table(self.table)
                .select("key")
                .eq("collection", collection)
                .execute()
            )
        except Exception as e:
            raise StorageError("keys", collection, str(e)) from e
        return [row["key"] for row in result.data or []]

    async def health_check(self) -> dict[str, Any]:
        """Check connectivity with a lightweight query.

        Returns:
            Dict with ``healthy``, ``latency_ms`` and ``error``.
        """
        start = time.perf_counter()
        try:
            self.client.table(self.table).select("key").limit(1).execute()
            latency_ms = (time.perf_counter() - start) * 1000
            return {"healthy": True, "latency_ms": round(latency_ms, 2), "error": None}
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.error(f"Key-value store health check failed: {e}")
            return {"healthy": False, "latency_ms": round(latency_ms, 2), "error": str(e)}
