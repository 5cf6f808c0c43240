"""Tests for importing browser-storage exports."""

from decimal import Decimal

import pytest

from cleardeal.jobs.models import Job
from cleardeal.jobs.status import FreelancerStatus, resolve_status
from cleardeal.storage import import_legacy_export

EXPORT = {
    "clearDealJobs": [
        {
            "id": 1700000000000,
            "title": "Smart contract audit",
            "description": "Review the escrow contract",
            "bounty": "0.5",
            "client": "0x" + "AA" * 20,
            "isCompleted": False,
        },
        {
            "id": 1700000000001,
            "title": "Logo",
            "description": "Coffee shop logo",
            "bounty": "0.2",
            "client": "0x" + "aa" * 20,
            "isCompleted": True,
            "submissionType": "link",
            "submissionContent": "https://dribbble.com/shots/1",
        },
    ],
    "clearDealApplications": [
        {
            "jobId": 1700000000000,
            "freelancer": "0x" + "BB" * 20,
            "status": "pending",
            "appliedAt": 1700000100000,
        },
        {
            "jobId": 1700000000001,
            "freelancer": "0x" + "bb" * 20,
            "status": "selected",
            "workStatus": "approved",
            "hasPaidFee": True,
        },
    ],
}


class TestImportLegacyExport:
    def test_imports_jobs_and_applications(self, store):
        result = import_legacy_export(store, EXPORT)

        assert result.jobs == 2
        assert result.applications == 2
        assert result.skipped == []

        job = store.get_job("1700000000000")
        assert job.client == "0x" + "aa" * 20
        assert job.bounty == Decimal("0.5")
        assert job.version == 1

        app = store.get_application("1700000000000", "0x" + "bb" * 20)
        assert app.has_paid_fee is True
        assert app.work_status == "not_started"
        assert resolve_status(job, app) == FreelancerStatus.PENDING_SELECTION

    def test_second_import_skips_existing(self, store):
        import_legacy_export(store, EXPORT)
        result = import_legacy_export(store, EXPORT)

        assert result.jobs == 0
        assert result.applications == 0
        assert len(result.skipped) == 4
        assert len(store.load_jobs()) == 2

    def test_existing_records_are_not_overwritten(self, store):
        store.save_jobs(
            [
                Job(
                    id="1700000000000",
                    client="0xsomeone",
                    title="Already here",
                    description="d",
                    bounty="9",
                )
            ]
        )

        import_legacy_export(store, EXPORT)

        assert store.get_job("1700000000000").title == "Already here"

    def test_invalid_records_are_skipped(self, store):
        export = {
            "clearDealJobs": [
                {"id": 1, "title": "No bounty", "description": "d", "client": "0xa"},
                {"id": 2, "title": "Bad bounty", "description": "d", "client": "0xa", "bounty": "-1"},
            ],
            "clearDealApplications": [
                {"jobId": 99, "freelancer": "0xb", "status": "pending"},
                {"jobId": 1, "status": "pending"},
            ],
        }

        result = import_legacy_export(store, export)

        assert result.jobs == 0
        assert result.applications == 0
        assert len(result.skipped) == 4
        assert store.load_jobs() == []

    def test_not_an_object(self, store):
        with pytest.raises(ValueError, match="JSON object"):
            import_legacy_export(store, [])
