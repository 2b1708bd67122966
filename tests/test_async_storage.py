"""
Tests for Async Storage Interface

Tests the async wrappers over the sync backends and the storage factory.
PostgreSQL is only exercised when a database is configured.
"""

import os
import uuid

import pytest
import pytest_asyncio

from rental_billing.async_storage import (
    AsyncInMemoryStorage,
    AsyncSQLiteStorage,
    AsyncPostgreSQLStorage,
    create_async_storage
)
from rental_billing.storage import DuplicateRecordError


class TestAsyncInMemoryStorage:
    """Test AsyncInMemoryStorage implementation"""

    @pytest_asyncio.fixture
    async def storage(self):
        storage = AsyncInMemoryStorage()
        await storage.initialize()
        yield storage
        await storage.close()

    @pytest.mark.asyncio
    async def test_basic_operations(self, storage):
        """Test save, load and find"""
        data = {"id": "lease_001", "status": "active", "rent_amount": "1500.00"}

        await storage.save("leases", "lease_001", data)
        assert await storage.load("leases", "lease_001") == data
        assert await storage.load("leases", "missing") is None

        await storage.save("leases", "lease_002", {"id": "lease_002", "status": "closed"})
        active = await storage.find("leases", {"status": "active"})
        assert [row["id"] for row in active] == ["lease_001"]
        assert len(await storage.load_all("leases")) == 2

    @pytest.mark.asyncio
    async def test_create_rejects_duplicate(self, storage):
        """Insert-only create raises on an existing id"""
        await storage.create("unified_payments", "rent:lease_001:2024-03", {"id": "x"})

        with pytest.raises(DuplicateRecordError):
            await storage.create("unified_payments", "rent:lease_001:2024-03", {"id": "y"})

        assert len(await storage.load_all("unified_payments")) == 1


class TestAsyncSQLiteStorage:
    """Test AsyncSQLiteStorage implementation"""

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        """Rows written through one instance are visible to the next"""
        db_path = str(tmp_path / "billing.db")

        storage = AsyncSQLiteStorage(db_path)
        await storage.create("unified_payments", "pay_001", {"id": "pay_001", "lease_id": "l1"})
        await storage.close()

        reopened = AsyncSQLiteStorage(db_path)
        rows = await reopened.find("unified_payments", {"lease_id": "l1"})
        assert [row["id"] for row in rows] == ["pay_001"]

        with pytest.raises(DuplicateRecordError):
            await reopened.create("unified_payments", "pay_001", {"id": "pay_001"})
        await reopened.close()


class TestCreateAsyncStorage:
    """Test the storage factory"""

    def test_memory_storage(self):
        assert isinstance(create_async_storage("memory"), AsyncInMemoryStorage)

    def test_sqlite_storage(self, tmp_path):
        storage = create_async_storage("sqlite", str(tmp_path / "billing.db"))
        assert isinstance(storage, AsyncSQLiteStorage)

    def test_postgresql_requires_connection_string(self):
        with pytest.raises(ValueError):
            create_async_storage("postgresql")

    def test_postgresql_storage(self):
        """The pool is only opened by initialize()"""
        storage = create_async_storage("postgresql", "postgresql://localhost/billing", pool_size=5)
        assert isinstance(storage, AsyncPostgreSQLStorage)
        assert storage.pool_size == 5

    def test_unknown_type_falls_back_to_memory(self):
        assert isinstance(create_async_storage("redis"), AsyncInMemoryStorage)


@pytest.mark.skipif(
    not os.environ.get("RENTAL_BILLING_TEST_DATABASE_URL"),
    reason="PostgreSQL tests skipped - set RENTAL_BILLING_TEST_DATABASE_URL to enable"
)
class TestAsyncPostgreSQLStorage:
    """Test AsyncPostgreSQLStorage against a real database"""

    @pytest_asyncio.fixture
    async def storage(self):
        storage = AsyncPostgreSQLStorage(os.environ["RENTAL_BILLING_TEST_DATABASE_URL"], pool_size=2)
        await storage.initialize()
        self.table = f"test_payments_{uuid.uuid4().hex[:8]}"
        yield storage
        async with storage.pool.acquire() as conn:
            await conn.execute(f'DROP TABLE IF EXISTS "{self.table}"')
        await storage.close()

    @pytest.mark.asyncio
    async def test_create_and_find(self, storage):
        await storage.create(self.table, "pay_001", {"id": "pay_001", "lease_id": "l1"})

        rows = await storage.find(self.table, {"lease_id": "l1"})
        assert [row["id"] for row in rows] == ["pay_001"]

        with pytest.raises(DuplicateRecordError):
            await storage.create(self.table, "pay_001", {"id": "pay_001"})
