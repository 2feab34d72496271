"""Dependency injection container for the status tracking engine.

Builds the storage backend and services from Settings, lazily and once.

Usage:
    from status_tracker.container import Container

    container = Container()
    status = container.status_store.create({"clientId": "client123"})
    results = container.search_engine.search({"textSearch": "retirement"})
"""

from functools import cached_property

from status_tracker.config import Settings, StorageBackend, get_settings
from status_tracker.logging_config import get_logger
from status_tracker.repositories.interfaces import StatusStorage
from status_tracker.services.history import HistoryRecorder
from status_tracker.services.search import SearchEngine
from status_tracker.services.status_store import StatusStore
from status_tracker.services.tracking_ids import TrackingIdGenerator

logger = get_logger(__name__)


class Container:
    """Lazily constructed services sharing one storage backend.

    For tests, pass explicit settings:

        container = Container(Settings(storage_backend=StorageBackend.MEMORY))
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            storage_backend=self._settings.storage_backend.value,
            environment=self._settings.environment.value,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def storage(self) -> StatusStorage:
        """The configured backend, initialized on first access."""
        backend = self._settings.storage_backend
        if backend == StorageBackend.POSTGRES:
            storage = self._create_postgres_storage()
        elif backend == StorageBackend.SQLITE:
            storage = self._create_sqlite_storage()
        else:
            from status_tracker.repositories.memory import InMemoryStatusStorage

            logger.info("initializing_memory_storage")
            storage = InMemoryStatusStorage()
        storage.initialize()
        return storage

    def _create_sqlite_storage(self) -> StatusStorage:
        from status_tracker.repositories.sqlite import SQLiteDatabase, SQLiteStatusStorage

        path = self._settings.sqlite_path
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("initializing_sqlite_storage", path=str(path))
        return SQLiteStatusStorage(SQLiteDatabase(path))

    def _create_postgres_storage(self) -> StatusStorage:
        url = self._settings.database_url
        if not url:
            raise ValueError("database_url must be set when storage_backend is postgres")

        from status_tracker.repositories.postgres import (
            PostgresDatabase,
            PostgresStatusStorage,
        )

        logger.info(
            "initializing_postgres_storage",
            # Don't log the full URL as it may contain credentials
            host=url.split("@")[-1].split("/")[0] if "@" in url else "localhost",
        )
        return PostgresStatusStorage(PostgresDatabase(url))

    @cached_property
    def tracking_id_generator(self) -> TrackingIdGenerator:
        return TrackingIdGenerator(prefix=self._settings.tracking_id_prefix)

    @cached_property
    def history_recorder(self) -> HistoryRecorder:
        return HistoryRecorder()

    @cached_property
    def status_store(self) -> StatusStore:
        return StatusStore(
            self.storage,
            tracking_ids=self.tracking_id_generator,
            history=self.history_recorder,
            max_retries=self._settings.storage_max_retries,
            retry_base_delay=self._settings.storage_retry_base_delay,
            conflict_retries=self._settings.conflict_retries,
        )

    @cached_property
    def search_engine(self) -> SearchEngine:
        return SearchEngine(self.status_store)

    def close(self) -> None:
        """Release the storage connection if one was opened."""
        if "storage" in self.__dict__:
            self.storage.close()
        for name in ("storage", "status_store", "search_engine"):
            self.__dict__.pop(name, None)
