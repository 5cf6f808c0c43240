"""Entity store protocol for ClearDeal backends.

The store holds the authoritative Job and Application collections. Writes
use per-record optimistic versioning: every record carries the version it
was read at, and a save whose version no longer matches the stored one is
rejected with ConflictError instead of silently overwriting another
writer's update. Currently supported:
- InMemoryEntityStore: process-local, for tests and embedding
- SQLiteEntityStore: file-backed, shared between processes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol, Tuple, runtime_checkable

from cleardeal.errors import ConflictError

if TYPE_CHECKING:
    from cleardeal.jobs.models import Application, Job

logger = logging.getLogger(__name__)

JOBS = "jobs"
APPLICATIONS = "applications"
ALL_COLLECTIONS = "all"

LOCAL = "local"
EXTERNAL = "external"


@dataclass(frozen=True)
class StoreChange:
    """Notification that a collection changed."""

    collection: str
    record_ids: Tuple[str, ...] = ()
    source: str = LOCAL  # 'local' (this store object) or 'external' (another process)


ChangeListener = Callable[[StoreChange], None]


def application_record_id(job_id: str, freelancer: str) -> str:
    return f"{job_id}:{freelancer}"


@runtime_checkable
class EntityStore(Protocol):
    """Protocol for job/application persistence backends."""

    def load_jobs(self) -> List[Job]:
        """Read every job."""
        ...

    def save_jobs(self, jobs: List[Job]) -> None:
        """Write the given jobs atomically. Raises ConflictError on a stale version."""
        ...

    def load_applications(self) -> List[Application]:
        """Read every application."""
        ...

    def save_applications(self, applications: List[Application]) -> None:
        """Write the given applications atomically. Raises ConflictError on a stale version."""
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        ...

    def get_application(self, job_id: str, freelancer: str) -> Optional[Application]:
        ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register for change notifications. Returns an unsubscribe callable."""
        ...


class ChangeNotifier:
    """Listener registry shared by the store implementations."""

    def __init__(self):
        self._listeners: List[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, change: StoreChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                # A broken view must not undo a committed write
                logger.exception(f"Store change listener failed for {change.collection}")


def check_version(
    collection: str,
    record_id: str,
    stored_version: Optional[int],
    record_version: int,
) -> None:
    """Raise ConflictError unless ``record_version`` may overwrite the stored record.

    Version 0 means "new record": it may only be written when nothing is
    stored under that key.
    """
    if record_version == 0:
        if stored_version is not None:
            raise ConflictError(
                collection,
                record_id,
                expected_version=0,
                actual_version=stored_version,
                message=f"{collection}/{record_id} already exists",
            )
        return

    if stored_version != record_version:
        logger.warning(
            f"Stale write rejected on {collection}/{record_id}: "
            f"expected version {record_version}, found {stored_version}"
        )
        raise ConflictError(collection, record_id, record_version, stored_version)


def ensure_unique_keys(collection: str, keys: List[str]) -> None:
    seen = set()
    for key in keys:
        if key in seen:
            raise ValueError(f"{collection}/{key} appears twice in one save")
        seen.add(key)
