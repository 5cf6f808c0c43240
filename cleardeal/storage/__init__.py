"""Entity storage backends for ClearDeal."""

from cleardeal.storage.base import (
    ALL_COLLECTIONS,
    APPLICATIONS,
    EXTERNAL,
    JOBS,
    LOCAL,
    ChangeListener,
    EntityStore,
    StoreChange,
    application_record_id,
)
from cleardeal.storage.legacy import ImportResult, import_legacy_export
from cleardeal.storage.memory import InMemoryEntityStore
from cleardeal.storage.sqlite import SQLiteEntityStore

__all__ = [
    "EntityStore",
    "StoreChange",
    "ChangeListener",
    "InMemoryEntityStore",
    "SQLiteEntityStore",
    "application_record_id",
    "import_legacy_export",
    "ImportResult",
    "JOBS",
    "APPLICATIONS",
    "ALL_COLLECTIONS",
    "LOCAL",
    "EXTERNAL",
]
