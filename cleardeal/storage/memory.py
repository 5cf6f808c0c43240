"""In-memory entity store for testing and local development."""

import logging
import threading
from typing import Dict, List, Optional, Tuple

from cleardeal.jobs.models import Application, Job

from .base import (
    APPLICATIONS,
    JOBS,
    ChangeNotifier,
    StoreChange,
    application_record_id,
    check_version,
    ensure_unique_keys,
)

logger = logging.getLogger(__name__)


class InMemoryEntityStore(ChangeNotifier):
    """Keeps serialized records in dicts; reads always return fresh objects."""

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._jobs: Dict[str, dict] = {}
        self._applications: Dict[Tuple[str, str], dict] = {}

    # === Jobs ===

    def load_jobs(self) -> List[Job]:
        with self._lock:
            records = list(self._jobs.values())
        return [Job.from_dict(r) for r in records]

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            record = self._jobs.get(job_id)
        return Job.from_dict(record) if record else None

    def save_jobs(self, jobs: List[Job]) -> None:
        if not jobs:
            return
        ensure_unique_keys(JOBS, [j.id for j in jobs])

        with self._lock:
            for job in jobs:
                stored = self._jobs.get(job.id)
                check_version(JOBS, job.id, stored["version"] if stored else None, job.version)
            for job in jobs:
                job.version += 1
                self._jobs[job.id] = job.to_dict()

        self._notify(StoreChange(JOBS, tuple(j.id for j in jobs)))

    # === Applications ===

    def load_applications(self) -> List[Application]:
        with self._lock:
            records = list(self._applications.values())
        return [Application.from_dict(r) for r in records]

    def get_application(self, job_id: str, freelancer: str) -> Optional[Application]:
        with self._lock:
            record = self._applications.get((job_id, freelancer))
        return Application.from_dict(record) if record else None

    def save_applications(self, applications: List[Application]) -> None:
        if not applications:
            return
        record_ids = [application_record_id(*a.key) for a in applications]
        ensure_unique_keys(APPLICATIONS, record_ids)

        with self._lock:
            for app, record_id in zip(applications, record_ids):
                stored = self._applications.get(app.key)
                check_version(
                    APPLICATIONS,
                    record_id,
                    stored["version"] if stored else None,
                    app.version,
                )
            for app in applications:
                app.version += 1
                self._applications[app.key] = app.to_dict()

        self._notify(StoreChange(APPLICATIONS, tuple(record_ids)))
