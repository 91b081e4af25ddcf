"""
Tests for storage backends and transaction support
"""

import pytest
import tempfile
from decimal import Decimal
from datetime import datetime, timezone
from pathlib import Path
from dataclasses import dataclass

from recaudo.storage import InMemoryStorage, SQLiteStorage, StorageRecord, serialize_value


# Test data
test_data = {
    "id": "test_001",
    "name": "Test Record",
    "amount": "100.50",
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


def exercise_crud(storage):
    storage.save("test_table", "record_1", test_data)
    assert storage.load("test_table", "record_1") == test_data

    assert storage.load("test_table", "non_existent") is None

    storage.save("test_table", "record_2", {"id": "record_2", "data": "test"})
    assert len(storage.load_all("test_table")) == 2

    results = storage.find("test_table", {"id": "test_001"})
    assert len(results) == 1
    assert results[0]["name"] == "Test Record"
    assert storage.find("test_table", {"missing_key": "x"}) == []

    storage.save("test_table", "record_2", {"id": "record_2", "data": "updated"})
    assert len(storage.load_all("test_table")) == 2
    assert storage.load("test_table", "record_2")["data"] == "updated"


class TestStorageInterface:
    """Basic CRUD operations on each backend"""

    def test_in_memory_storage_basic_operations(self):
        storage = InMemoryStorage()
        exercise_crud(storage)
        storage.close()

    def test_sqlite_storage_basic_operations(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = SQLiteStorage(Path(temp_dir) / "test.db")
            exercise_crud(storage)
            storage.close()

    def test_in_memory_returns_copies(self):
        storage = InMemoryStorage()
        record = {"id": "r1", "items": [1, 2]}
        storage.save("t", "r1", record)
        record["items"].append(3)
        loaded = storage.load("t", "r1")
        loaded["items"].append(4)
        assert storage.load("t", "r1")["items"] == [1, 2]

    def test_sqlite_persists_across_connections(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = Path(temp_dir) / "test.db"
            storage = SQLiteStorage(db_path)
            storage.save("credits", "CR001", {"id": "CR001", "principal": "1000000"})
            storage.close()

            reopened = SQLiteStorage(db_path)
            assert reopened.load("credits", "CR001")["principal"] == "1000000"
            reopened.close()


class TestTransactionSupport:
    """Atomic blocks commit together or not at all"""

    @pytest.mark.parametrize("make_storage", [InMemoryStorage, SQLiteStorage])
    def test_atomic_commit(self, make_storage):
        storage = make_storage()
        with storage.atomic():
            storage.save("test_table", "record_1", test_data)
            storage.save("test_table", "record_2", {"id": "record_2"})
        assert len(storage.load_all("test_table")) == 2
        storage.close()

    @pytest.mark.parametrize("make_storage", [InMemoryStorage, SQLiteStorage])
    def test_atomic_rollback(self, make_storage):
        storage = make_storage()
        storage.save("test_table", "record_1", test_data)

        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("test_table", "record_2", {"id": "record_2"})
                storage.save("test_table", "record_1", {"id": "test_001", "name": "Overwritten"})
                raise ValueError("Simulated error")

        assert storage.load("test_table", "record_1")["name"] == "Test Record"
        assert storage.load("test_table", "record_2") is None
        storage.close()

    @pytest.mark.parametrize("make_storage", [InMemoryStorage, SQLiteStorage])
    def test_nested_atomic_rolls_back_outer(self, make_storage):
        storage = make_storage()

        with pytest.raises(ValueError):
            with storage.atomic():
                storage.save("test_table", "outer", {"id": "outer"})
                with storage.atomic():
                    storage.save("test_table", "inner", {"id": "inner"})
                raise ValueError("Simulated error")

        assert storage.load_all("test_table") == []
        storage.close()


class TestStorageRecord:
    """StorageRecord to/from dict conversion"""

    def test_storage_record_serialization(self):
        @dataclass
        class TestRecord(StorageRecord):
            name: str
            amount: Decimal

        record = TestRecord(
            id="test_001",
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
            name="Test Record",
            amount=Decimal("100.50")
        )

        data = record.to_dict()
        assert data["id"] == "test_001"
        assert data["amount"] == "100.50"
        assert isinstance(data["created_at"], str)

        restored = TestRecord.from_dict(data)
        assert restored.name == record.name
        assert isinstance(restored.created_at, datetime)

    def test_serialize_value_nested(self):
        value = {"amounts": [Decimal("1.10"), Decimal("2")], "when": datetime(2024, 3, 1, tzinfo=timezone.utc)}
        assert serialize_value(value) == {"amounts": ["1.10", "2"], "when": "2024-03-01T00:00:00+00:00"}
