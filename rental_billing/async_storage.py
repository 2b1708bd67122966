"""
Async Storage Backend Module

Provides the async storage interface used by the payment services, thread-pool
wrappers around the sync backends, and production async PostgreSQL using asyncpg.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any
from decimal import Decimal
from datetime import datetime, date
import asyncio
import json
import logging

from .storage import StorageInterface, InMemoryStorage, SQLiteStorage, DuplicateRecordError


logger = logging.getLogger("rental_billing.storage")


class AsyncStorageInterface(ABC):
    """Abstract interface for async storage backends"""

    @abstractmethod
    async def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save (insert or replace) a record"""
        pass

    @abstractmethod
    async def create(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Insert a record, raising DuplicateRecordError if the id exists"""
        pass

    @abstractmethod
    async def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    async def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    async def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        pass

    async def initialize(self) -> None:
        """Open connections (default no-op)"""
        pass

    async def close(self) -> None:
        """Close storage connection (default no-op)"""
        pass


class ThreadedAsyncStorage(AsyncStorageInterface):
    """Async wrapper running a sync backend in the default thread pool"""

    def __init__(self, sync_storage: StorageInterface):
        self._sync_storage = sync_storage
        self._lock = asyncio.Lock()

    async def _call(self, func, *args):
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    async def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        await self._call(self._sync_storage.save, table, record_id, data)

    async def create(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        await self._call(self._sync_storage.create, table, record_id, data)

    async def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        return await self._call(self._sync_storage.load, table, record_id)

    async def load_all(self, table: str) -> List[Dict[str, Any]]:
        return await self._call(self._sync_storage.load_all, table)

    async def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await self._call(self._sync_storage.find, table, filters)

    async def close(self) -> None:
        await asyncio.to_thread(self._sync_storage.close)


class AsyncInMemoryStorage(ThreadedAsyncStorage):
    """Async in-memory storage for tests and dry runs"""

    def __init__(self):
        super().__init__(InMemoryStorage())


class AsyncSQLiteStorage(ThreadedAsyncStorage):
    """Async access to a SQLite file"""

    def __init__(self, db_path: str = ":memory:"):
        super().__init__(SQLiteStorage(db_path))


class AsyncPostgreSQLStorage(AsyncStorageInterface):
    """True async PostgreSQL using asyncpg"""

    def __init__(self, connection_string: str, pool_size: int = 10):
        self.connection_string = connection_string
        self.pool_size = pool_size
        self.pool = None
        self._asyncpg = None
        self._known_tables = set()

    async def initialize(self):
        """Create the connection pool; call once on start-up"""
        try:
            import asyncpg
        except ImportError:
            raise ImportError("asyncpg is required for AsyncPostgreSQLStorage")
        self._asyncpg = asyncpg
        self.pool = await asyncpg.create_pool(
            self.connection_string,
            min_size=2,
            max_size=self.pool_size,
            command_timeout=60
        )

    async def close(self):
        """Close the connection pool"""
        if self.pool:
            await self.pool.close()

    def _serialize_value(self, value: Any) -> Any:
        if isinstance(value, Decimal):
            return str(value)
        elif isinstance(value, (datetime, date)):
            return value.isoformat()
        return value

    def _decode(self, raw: Any) -> Dict[str, Any]:
        if isinstance(raw, str):
            return json.loads(raw)
        return dict(raw)

    async def _ensure_table(self, table: str) -> None:
        if not self.pool:
            raise RuntimeError("Pool not initialized. Call initialize() first.")
        if table in self._known_tables:
            return

        async with self.pool.acquire() as conn:
            await conn.execute(f'''
                CREATE TABLE IF NOT EXISTS "{table}" (
                    id TEXT PRIMARY KEY,
                    data JSONB NOT NULL,
                    created_at TIMESTAMP WITH TIME ZONE DEFAULT NOW(),
                    updated_at TIMESTAMP WITH TIME ZONE DEFAULT NOW()
                )
            ''')
        self._known_tables.add(table)

    def _payload(self, data: Dict[str, Any]) -> str:
        return json.dumps({key: self._serialize_value(value) for key, value in data.items()})

    async def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        await self._ensure_table(table)

        async with self.pool.acquire() as conn:
            await conn.execute(f'''
                INSERT INTO "{table}" (id, data, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (id)
                DO UPDATE SET data = $2, updated_at = NOW()
            ''', record_id, self._payload(data))

    async def create(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        await self._ensure_table(table)

        async with self.pool.acquire() as conn:
            try:
                await conn.execute(f'''
                    INSERT INTO "{table}" (id, data) VALUES ($1, $2)
                ''', record_id, self._payload(data))
            except self._asyncpg.UniqueViolationError as e:
                raise DuplicateRecordError(table, record_id) from e

    async def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        await self._ensure_table(table)

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f'SELECT data FROM "{table}" WHERE id = $1', record_id)
            if row:
                return self._decode(row['data'])
            return None

    async def load_all(self, table: str) -> List[Dict[str, Any]]:
        await self._ensure_table(table)

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f'SELECT data FROM "{table}" ORDER BY created_at')
            return [self._decode(row['data']) for row in rows]

    async def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        await self._ensure_table(table)

        # Filter values are compared as text against the JSONB document
        conditions = []
        params = []
        for key, value in filters.items():
            params.append(key)
            params.append(str(value))
            conditions.append(f"data->>(${len(params) - 1}::text) = ${len(params)}::text")

        where_clause = " AND ".join(conditions) if conditions else "TRUE"

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f'SELECT data FROM "{table}" WHERE {where_clause} ORDER BY created_at',
                *params
            )
            return [self._decode(row['data']) for row in rows]


def create_async_storage(
    storage_type: str = "memory",
    connection_string: Optional[str] = None,
    pool_size: int = 10
) -> AsyncStorageInterface:
    """Factory function to create async storage instances"""
    storage_type = storage_type.lower()

    if storage_type == "postgresql":
        if not connection_string:
            raise ValueError("PostgreSQL storage requires a connection string")
        return AsyncPostgreSQLStorage(connection_string, pool_size)

    if storage_type == "sqlite":
        return AsyncSQLiteStorage(connection_string or "rental_billing.db")

    if storage_type != "memory":
        logger.warning(f"Unknown storage type '{storage_type}' - using in-memory storage")
    return AsyncInMemoryStorage()
