"""Tests for the entity stores: versioning, atomic saves and change notification."""

import pytest

from cleardeal.errors import ConflictError
from cleardeal.jobs.models import Application, Job
from cleardeal.storage import (
    ALL_COLLECTIONS,
    APPLICATIONS,
    EXTERNAL,
    JOBS,
    LOCAL,
    EntityStore,
    InMemoryEntityStore,
    SQLiteEntityStore,
)


def make_job(job_id="job-1", **fields) -> Job:
    return Job(
        id=job_id,
        client=fields.pop("client", "0xclient"),
        title=fields.pop("title", "Title"),
        description="Description",
        bounty=fields.pop("bounty", "1.5"),
        **fields,
    )


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryEntityStore()
    else:
        store = SQLiteEntityStore(tmp_path / "cleardeal.db")
        yield store
        store.close()


class TestEntityStore:
    """Behavior shared by every backend."""

    def test_implements_protocol(self, any_store):
        assert isinstance(any_store, EntityStore)

    def test_save_and_load_job(self, any_store):
        job = make_job()
        any_store.save_jobs([job])

        assert job.version == 1
        loaded = any_store.get_job("job-1")
        assert loaded == job
        assert any_store.load_jobs() == [job]
        assert any_store.get_job("missing") is None

    def test_reads_return_copies(self, any_store):
        any_store.save_jobs([make_job()])
        loaded = any_store.get_job("job-1")
        loaded.title = "Changed locally"
        assert any_store.get_job("job-1").title == "Title"

    def test_update_bumps_version(self, any_store):
        any_store.save_jobs([make_job()])
        job = any_store.get_job("job-1")
        job.is_completed = True
        any_store.save_jobs([job])

        stored = any_store.get_job("job-1")
        assert stored.is_completed is True
        assert stored.version == 2

    def test_stale_write_is_rejected(self, any_store):
        any_store.save_jobs([make_job()])
        first = any_store.get_job("job-1")
        second = any_store.get_job("job-1")

        first.selected_freelancer = "0xa"
        any_store.save_jobs([first])
        second.selected_freelancer = "0xb"
        with pytest.raises(ConflictError) as exc_info:
            any_store.save_jobs([second])

        assert exc_info.value.collection == JOBS
        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2
        assert any_store.get_job("job-1").selected_freelancer == "0xa"

    def test_creating_existing_key_is_rejected(self, any_store):
        any_store.save_jobs([make_job()])
        with pytest.raises(ConflictError, match="already exists"):
            any_store.save_jobs([make_job(title="Duplicate")])
        assert any_store.get_job("job-1").title == "Title"

    def test_batch_save_is_atomic(self, any_store):
        any_store.save_applications(
            [Application(job_id="job-1", freelancer="0xa"), Application(job_id="job-1", freelancer="0xb")]
        )
        a = any_store.get_application("job-1", "0xa")
        b = any_store.get_application("job-1", "0xb")

        concurrent = any_store.get_application("job-1", "0xb")
        concurrent.status = "rejected"
        any_store.save_applications([concurrent])

        a.status = "selected"
        b.status = "rejected"
        with pytest.raises(ConflictError):
            any_store.save_applications([a, b])

        assert any_store.get_application("job-1", "0xa").status == "pending"
        assert a.version == 1

    def test_records_not_passed_are_kept(self, any_store):
        any_store.save_jobs([make_job("job-1"), make_job("job-2")])
        job = any_store.get_job("job-1")
        job.title = "Renamed"
        any_store.save_jobs([job])

        assert {j.id for j in any_store.load_jobs()} == {"job-1", "job-2"}

    def test_duplicate_key_in_one_save(self, any_store):
        with pytest.raises(ValueError, match="twice"):
            any_store.save_jobs([make_job(), make_job()])
        assert any_store.load_jobs() == []

    def test_application_round_trip(self, any_store):
        app = Application(job_id="job-1", freelancer="0xa", has_paid_fee=False)
        any_store.save_applications([app])

        loaded = any_store.get_application("job-1", "0xa")
        assert loaded == app
        assert any_store.get_application("job-1", "0xb") is None
        assert any_store.load_applications() == [app]

    def test_subscribers_are_notified(self, any_store):
        changes = []
        unsubscribe = any_store.subscribe(changes.append)

        any_store.save_jobs([make_job()])
        any_store.save_applications([Application(job_id="job-1", freelancer="0xa")])
        unsubscribe()
        any_store.save_jobs([make_job("job-2")])

        assert [c.collection for c in changes] == [JOBS, APPLICATIONS]
        assert changes[0].record_ids == ("job-1",)
        assert changes[1].record_ids == ("job-1:0xa",)
        assert all(c.source == LOCAL for c in changes)

    def test_failed_save_does_not_notify(self, any_store):
        any_store.save_jobs([make_job()])
        changes = []
        any_store.subscribe(changes.append)

        with pytest.raises(ConflictError):
            any_store.save_jobs([make_job()])
        assert changes == []

    def test_broken_listener_does_not_fail_save(self, any_store):
        def broken(change):
            raise RuntimeError("view crashed")

        any_store.subscribe(broken)
        any_store.save_jobs([make_job()])
        assert any_store.get_job("job-1") is not None


class TestSQLiteEntityStore:
    """Behavior specific to the shared SQLite file."""

    def test_data_survives_reopen(self, tmp_path):
        path = tmp_path / "cleardeal.db"
        store = SQLiteEntityStore(path)
        store.save_jobs([make_job()])
        store.close()

        reopened = SQLiteEntityStore(path)
        assert reopened.get_job("job-1").version == 1
        reopened.close()

    def test_conflict_between_processes(self, tmp_path):
        path = tmp_path / "cleardeal.db"
        a = SQLiteEntityStore(path)
        b = SQLiteEntityStore(path)
        a.save_jobs([make_job()])

        job_a = a.get_job("job-1")
        job_b = b.get_job("job-1")
        job_b.is_completed = True
        b.save_jobs([job_b])

        job_a.title = "Stale edit"
        with pytest.raises(ConflictError):
            a.save_jobs([job_a])

        a.close()
        b.close()

    def test_poll_external_changes(self, tmp_path):
        path = tmp_path / "cleardeal.db"
        a = SQLiteEntityStore(path)
        b = SQLiteEntityStore(path)
        seen = []
        b.subscribe(seen.append)

        assert b.poll_external_changes() is False
        a.save_jobs([make_job()])

        assert b.poll_external_changes() is True
        assert seen[-1].collection == ALL_COLLECTIONS
        assert seen[-1].source == EXTERNAL
        assert b.poll_external_changes() is False

        a.close()
        b.close()

    def test_own_writes_are_not_external(self, tmp_path):
        store = SQLiteEntityStore(tmp_path / "cleardeal.db")
        store.save_jobs([make_job()])
        assert store.poll_external_changes() is False
        store.close()
