"""Tests for the service container."""

import pytest

from status_tracker.config import Settings, StorageBackend
from status_tracker.container import Container
from status_tracker.repositories.memory import InMemoryStatusStorage
from status_tracker.repositories.sqlite import SQLiteStatusStorage


class TestContainer:
    def test_memory_backend(self):
        container = Container(Settings(storage_backend=StorageBackend.MEMORY))

        assert isinstance(container.storage, InMemoryStatusStorage)
        status = container.status_store.create({"client_id": "client123"})
        assert container.search_engine.search({"client_id": "client123"})[0] == status

    def test_services_are_shared(self):
        container = Container(Settings(storage_backend=StorageBackend.MEMORY))

        assert container.status_store is container.status_store
        assert container.search_engine is container.search_engine

    def test_sqlite_backend_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "status.db"
        container = Container(
            Settings(storage_backend=StorageBackend.SQLITE, sqlite_path=path)
        )

        assert isinstance(container.storage, SQLiteStatusStorage)
        assert path.parent.exists()
        container.close()

    def test_tracking_id_prefix_from_settings(self):
        container = Container(
            Settings(storage_backend=StorageBackend.MEMORY, tracking_id_prefix="WM")
        )

        status = container.status_store.create({"client_id": "client123"})

        assert status.tracking_id.startswith("WM-")

    def test_postgres_requires_url(self):
        container = Container(
            Settings(storage_backend=StorageBackend.POSTGRES, database_url=None)
        )

        with pytest.raises(ValueError, match="database_url"):
            container.storage

    def test_close_resets_services(self, tmp_path):
        container = Container(
            Settings(storage_backend=StorageBackend.SQLITE, sqlite_path=tmp_path / "s.db")
        )
        status = container.status_store.create({"client_id": "client123"})

        container.close()

        assert container.status_store.get_by_id(status.status_id) == status
        container.close()
