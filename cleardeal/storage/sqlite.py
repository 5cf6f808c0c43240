"""SQLite entity store for ClearDeal.

Records are stored as JSON documents next to a ``version`` column. Updates
use ``UPDATE ... WHERE version = ?`` so two processes sharing a database
file cannot overwrite each other's changes; the loser gets ConflictError.
"""

import contextlib
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from cleardeal.errors import ConflictError
from cleardeal.jobs.models import Application, Job

from .base import (
    ALL_COLLECTIONS,
    APPLICATIONS,
    EXTERNAL,
    JOBS,
    ChangeNotifier,
    StoreChange,
    application_record_id,
    ensure_unique_keys,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    client TEXT NOT NULL,
    data TEXT NOT NULL,
    version INTEGER NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_jobs_client ON jobs(client);

CREATE TABLE IF NOT EXISTS applications (
    job_id TEXT NOT NULL,
    freelancer TEXT NOT NULL,
    data TEXT NOT NULL,
    version INTEGER NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (job_id, freelancer)
);

CREATE INDEX IF NOT EXISTS idx_applications_freelancer ON applications(freelancer);
"""


class SQLiteEntityStore(ChangeNotifier):
    """File-backed store that several processes can share."""

    def __init__(self, db_path: Union[str, Path]):
        super().__init__()
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

        # Long-lived connection used only to watch PRAGMA data_version,
        # which changes when any *other* connection commits.
        self._watch_conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._seen_data_version = self._data_version()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Context manager that commits on success, rolls back on error, always closes."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA)
            conn.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )

    def close(self) -> None:
        self._watch_conn.close()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    # === Jobs ===

    def load_jobs(self) -> List[Job]:
        with self._connect() as conn:
            rows = conn.execute("SELECT data, version FROM jobs ORDER BY rowid").fetchall()
        return [self._row_to_job(r) for r in rows]

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data, version FROM jobs WHERE id = ?", (job_id,)
            ).fetchone()
        return self._row_to_job(row) if row else None

    def save_jobs(self, jobs: List[Job]) -> None:
        if not jobs:
            return
        ensure_unique_keys(JOBS, [j.id for j in jobs])
        now = self._now()

        with self._connect() as conn:
            for job in jobs:
                data = job.to_dict()
                data["version"] = job.version + 1
                payload = json.dumps(data)
                if job.version == 0:
                    try:
                        conn.execute(
                            "INSERT INTO jobs (id, client, data, version, updated_at) "
                            "VALUES (?, ?, ?, 1, ?)",
                            (job.id, job.client, payload, now),
                        )
                    except sqlite3.IntegrityError:
                        raise ConflictError(
                            JOBS, job.id, 0, self._stored_version(conn, JOBS, job.id),
                            message=f"{JOBS}/{job.id} already exists",
                        ) from None
                else:
                    cursor = conn.execute(
                        "UPDATE jobs SET data = ?, version = version + 1, updated_at = ? "
                        "WHERE id = ? AND version = ?",
                        (payload, now, job.id, job.version),
                    )
                    if cursor.rowcount == 0:
                        actual = self._stored_version(conn, JOBS, job.id)
                        logger.warning(
                            f"Stale write rejected on {JOBS}/{job.id}: "
                            f"expected version {job.version}, found {actual}"
                        )
                        raise ConflictError(JOBS, job.id, job.version, actual)

        for job in jobs:
            job.version += 1
        self._mark_seen()
        self._notify(StoreChange(JOBS, tuple(j.id for j in jobs)))

    # === Applications ===

    def load_applications(self) -> List[Application]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT data, version FROM applications ORDER BY rowid"
            ).fetchall()
        return [self._row_to_application(r) for r in rows]

    def get_application(self, job_id: str, freelancer: str) -> Optional[Application]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data, version FROM applications WHERE job_id = ? AND freelancer = ?",
                (job_id, freelancer),
            ).fetchone()
        return self._row_to_application(row) if row else None

    def save_applications(self, applications: List[Application]) -> None:
        if not applications:
            return
        record_ids = [application_record_id(*a.key) for a in applications]
        ensure_unique_keys(APPLICATIONS, record_ids)
        now = self._now()

        with self._connect() as conn:
            for app, record_id in zip(applications, record_ids):
                data = app.to_dict()
                data["version"] = app.version + 1
                payload = json.dumps(data)
                if app.version == 0:
                    try:
                        conn.execute(
                            "INSERT INTO applications "
                            "(job_id, freelancer, data, version, updated_at) "
                            "VALUES (?, ?, ?, 1, ?)",
                            (app.job_id, app.freelancer, payload, now),
                        )
                    except sqlite3.IntegrityError:
                        raise ConflictError(
                            APPLICATIONS, record_id, 0,
                            self._stored_application_version(conn, app),
                            message=f"{APPLICATIONS}/{record_id} already exists",
                        ) from None
                else:
                    cursor = conn.execute(
                        "UPDATE applications SET data = ?, version = version + 1, "
                        "updated_at = ? WHERE job_id = ? AND freelancer = ? AND version = ?",
                        (payload, now, app.job_id, app.freelancer, app.version),
                    )
                    if cursor.rowcount == 0:
                        actual = self._stored_application_version(conn, app)
                        logger.warning(
                            f"Stale write rejected on {APPLICATIONS}/{record_id}: "
                            f"expected version {app.version}, found {actual}"
                        )
                        raise ConflictError(APPLICATIONS, record_id, app.version, actual)

        for app in applications:
            app.version += 1
        self._mark_seen()
        self._notify(StoreChange(APPLICATIONS, tuple(record_ids)))

    # === Change detection ===

    def _data_version(self) -> int:
        return self._watch_conn.execute("PRAGMA data_version").fetchone()[0]

    def _mark_seen(self) -> None:
        self._seen_data_version = self._data_version()

    def poll_external_changes(self) -> bool:
        """Notify listeners if another process committed since the last check.

        Returns True when a change was detected.
        """
        current = self._data_version()
        if current == self._seen_data_version:
            return False
        self._seen_data_version = current
        self._notify(StoreChange(ALL_COLLECTIONS, source=EXTERNAL))
        return True

    # === Helpers ===

    @staticmethod
    def _stored_version(conn, table: str, record_id: str) -> Optional[int]:
        row = conn.execute(f"SELECT version FROM {table} WHERE id = ?", (record_id,)).fetchone()
        return row["version"] if row else None

    @staticmethod
    def _stored_application_version(conn, app: Application) -> Optional[int]:
        row = conn.execute(
            "SELECT version FROM applications WHERE job_id = ? AND freelancer = ?",
            (app.job_id, app.freelancer),
        ).fetchone()
        return row["version"] if row else None

    @staticmethod
    def _row_to_job(row) -> Job:
        data = json.loads(row["data"])
        data["version"] = row["version"]
        return Job.from_dict(data)

    @staticmethod
    def _row_to_application(row) -> Application:
        data = json.loads(row["data"])
        data["version"] = row["version"]
        return Application.from_dict(data)
