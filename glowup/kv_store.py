"""Key-value store backed by a Supabase table, plus an in-memory double."""
from typing import Any, Dict, List, Optional, Protocol, Tuple
import copy
import logging

from supabase import Client

logger = logging.getLogger(__name__)


class KVStore(Protocol):
    """Operations the services need from the key-value store."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        ...

    async def compare_and_set(
        self,
        key: str,
        value: Dict[str, Any],
        expected_version: Optional[int]
    ) -> bool:
        ...

    async def get_by_prefix(self, prefix: str) -> List[Tuple[str, Dict[str, Any]]]:
        ...


class SupabaseKVStore:
    """Store rows of ``(key text primary key, value jsonb)`` in a Supabase table."""

    # PostgREST default max-rows
    page_size = 1000

    def __init__(self, client: Client, table: str):
        self.client = client
        self.table = table

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Fetch the value stored under key, or None."""
        response = self.client.table(self.table)\
            .select('value')\
            .eq('key', key)\
            .limit(1)\
            .execute()

        if not response.data:
            return None
        return response.data[0]['value']

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        """Insert or overwrite the value under key."""
        self.client.table(self.table).upsert({"key": key, "value": value}).execute()

    async def compare_and_set(
        self,
        key: str,
        value: Dict[str, Any],
        expected_version: Optional[int]
    ) -> bool:
        """
        Overwrite key only if the stored value still carries expected_version.

        Args:
            key: Row key
            value: New value
            expected_version: Version read before the update; None matches
                records written before versioning existed

        Returns:
            True if the row was updated, False on a version mismatch
        """
        query = self.client.table(self.table)\
            .update({"value": value})\
            .eq('key', key)

        if expected_version is None:
            query = query.is_('value->>version', 'null')
        else:
            query = query.eq('value->>version', str(expected_version))

        response = query.execute()
        return bool(response.data)

    async def get_by_prefix(self, prefix: str) -> List[Tuple[str, Dict[str, Any]]]:
        """
        Return all (key, value) pairs whose key starts with prefix.

        PostgREST caps each response, so rows are read page by page in key
        order until a short page comes back.
        """
        rows: List[Tuple[str, Dict[str, Any]]] = []
        start = 0

        while True:
            response = self.client.table(self.table)\
                .select('key, value')\
                .like('key', f"{prefix}%")\
                .order('key')\
                .range(start, start + self.page_size - 1)\
                .execute()

            page = response.data or []
            rows.extend((row['key'], row['value']) for row in page)

            if len(page) < self.page_size:
                return rows
            start += self.page_size


class InMemoryKVStore:
    """Dictionary-backed store for local development and tests."""

    def __init__(self):
        self.data: Dict[str, Dict[str, Any]] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        value = self.data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        self.data[key] = copy.deepcopy(value)

    async def compare_and_set(
        self,
        key: str,
        value: Dict[str, Any],
        expected_version: Optional[int]
    ) -> bool:
        # No await between the check and the write
        current = self.data.get(key)
        if current is None or current.get("version") != expected_version:
            return False
        self.data[key] = copy.deepcopy(value)
        return True

    async def get_by_prefix(self, prefix: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [
            (key, copy.deepcopy(value))
            for key, value in self.data.items()
            if key.startswith(prefix)
        ]

    def reset(self) -> None:
        self.data.clear()
