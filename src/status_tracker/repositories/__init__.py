from status_tracker.repositories.interfaces import (
    SOURCE_ID_INDEX,
    TRACKING_ID_INDEX,
    StatusStorage,
)
from status_tracker.repositories.memory import InMemoryStatusStorage
from status_tracker.repositories.sqlite import SQLiteDatabase, SQLiteStatusStorage

__all__ = [
    "SOURCE_ID_INDEX",
    "TRACKING_ID_INDEX",
    "InMemoryStatusStorage",
    "SQLiteDatabase",
    "SQLiteStatusStorage",
    "StatusStorage",
]

# PostgreSQL support is optional - only available if psycopg2 is installed
try:
    from status_tracker.repositories.postgres import (
        PostgresDatabase,
        PostgresStatusStorage,
    )

    __all__ += ["PostgresDatabase", "PostgresStatusStorage"]
except ImportError:
    pass
