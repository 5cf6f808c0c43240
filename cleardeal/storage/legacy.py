"""Import of browser-storage exports.

Earlier versions of the marketplace kept everything in two JSON arrays,
``clearDealJobs`` and ``clearDealApplications``, with camelCase keys. This
module loads such an export into an EntityStore. Records whose key already
exists in the store are skipped, as are records that fail validation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from cleardeal.identity import normalize_address
from cleardeal.jobs.models import Application, Job

from .base import EntityStore, application_record_id

logger = logging.getLogger(__name__)

LEGACY_JOBS_KEY = "clearDealJobs"
LEGACY_APPLICATIONS_KEY = "clearDealApplications"


@dataclass
class ImportResult:
    jobs: int = 0
    applications: int = 0
    skipped: List[str] = field(default_factory=list)


def import_legacy_export(store: EntityStore, data: Dict[str, Any]) -> ImportResult:
    """Load a legacy export into ``store``.

    Args:
        store: Destination store
        data: Parsed export with ``clearDealJobs`` and/or ``clearDealApplications``

    Returns:
        Counts of imported records and a description of every skipped one
    """
    if not isinstance(data, dict):
        raise ValueError("Export must be a JSON object")

    result = ImportResult()
    jobs: List[Job] = []
    applications: List[Application] = []

    for raw in data.get(LEGACY_JOBS_KEY) or []:
        try:
            job = Job.from_dict({**raw, "version": 0})
        except (KeyError, TypeError, ValueError) as e:
            result.skipped.append(f"job {raw.get('id') if isinstance(raw, dict) else raw!r}: {e}")
            continue
        job.client = normalize_address(job.client)
        if job.selected_freelancer:
            job.selected_freelancer = normalize_address(job.selected_freelancer)
        if store.get_job(job.id) is not None or any(j.id == job.id for j in jobs):
            result.skipped.append(f"job {job.id}: already exists")
            continue
        jobs.append(job)

    for raw in data.get(LEGACY_APPLICATIONS_KEY) or []:
        try:
            app = Application.from_dict({**raw, "version": 0})
        except (KeyError, TypeError, ValueError) as e:
            result.skipped.append(f"application {raw!r}: {e}")
            continue
        app.freelancer = normalize_address(app.freelancer)
        record_id = application_record_id(*app.key)
        known_job = store.get_job(app.job_id) is not None or any(j.id == app.job_id for j in jobs)
        if not known_job:
            result.skipped.append(f"application {record_id}: unknown job")
            continue
        if store.get_application(*app.key) is not None or any(
            a.key == app.key for a in applications
        ):
            result.skipped.append(f"application {record_id}: already exists")
            continue
        applications.append(app)

    store.save_jobs(jobs)
    store.save_applications(applications)
    result.jobs = len(jobs)
    result.applications = len(applications)

    for reason in result.skipped:
        logger.warning(f"Skipped legacy record: {reason}")
    logger.info(
        f"Imported {result.jobs} jobs and {result.applications} applications "
        f"({len(result.skipped)} skipped)"
    )
    return result
