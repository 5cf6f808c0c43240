"""
Job lifecycle engine.

Creates jobs and applies the job-side effects of application transitions:
recording the latest submission, recording the selected freelancer and
marking the job completed. It does not check application state; callers
(the application engine) do that before invoking the side effects here.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, List, Optional

from cleardeal.errors import ConflictError, NotFoundError, ValidationError
from cleardeal.identity import normalize_address, require_caller, same_identity
from cleardeal.jobs.models import MAX_TITLE_LENGTH, Job, Submission, to_amount, utc_now
from cleardeal.logging_config import log_transition
from cleardeal.storage.base import EntityStore

logger = logging.getLogger(__name__)

# Job-side effects are plain field overwrites, so a concurrent write to the
# same job is resolved by re-reading and re-applying the overwrite.
MAX_FIELD_UPDATE_ATTEMPTS = 3


@dataclass
class ClientSummary:
    """Counts shown on a client's dashboard."""

    jobs_posted: int
    total_applications: int
    completed_jobs: int


class JobService:
    """Job operations: create, read, and the side effects of application transitions."""

    def __init__(self, store: EntityStore):
        self.store = store

    # === Creation ===

    def create_job(self, client: str, title: str, description: str, bounty) -> Job:
        """Post a new job.

        Raises:
            ValidationError: blank title/description or a non-positive bounty
            NotEligibleError: no client identity
        """
        client = require_caller(client)

        title = (title or "").strip()
        description = (description or "").strip()
        if not title:
            raise ValidationError("Title is required")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
        if not description:
            raise ValidationError("Description is required")

        try:
            amount = to_amount(bounty)
        except ValueError as e:
            raise ValidationError(str(e)) from None
        if amount <= 0:
            raise ValidationError("Bounty must be positive")

        job = Job(
            id=str(uuid.uuid4()),
            client=client,
            title=title,
            description=description,
            bounty=amount,
            created_at=utc_now(),
        )
        self.store.save_jobs([job])

        log_transition("job", job.id, "created", logger=logger, client=client, bounty=amount)
        return job

    # === Reads ===

    def get_job(self, job_id: str) -> Job:
        job = self.store.get_job(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        return job

    def list_jobs(self, client: Optional[str] = None, open_only: bool = False) -> List[Job]:
        jobs = self.store.load_jobs()
        if client is not None:
            jobs = [j for j in jobs if same_identity(j.client, client)]
        if open_only:
            jobs = [j for j in jobs if j.is_open]
        jobs.sort(key=lambda j: j.created_at or utc_now(), reverse=True)
        return jobs

    def get_jobs_for_client(self, client: str) -> List[Job]:
        return self.list_jobs(client=client)

    def client_summary(self, client: str) -> ClientSummary:
        jobs = self.get_jobs_for_client(client)
        job_ids = {j.id for j in jobs}
        applications = [a for a in self.store.load_applications() if a.job_id in job_ids]
        return ClientSummary(
            jobs_posted=len(jobs),
            total_applications=len(applications),
            completed_jobs=sum(1 for j in jobs if j.is_completed),
        )

    # === Side effects of application transitions ===

    def record_submission(self, job_id: str, submission: Submission) -> Job:
        """Copy the latest submission onto the job. Last submission wins."""

        def apply(job: Job) -> None:
            job.submission = Submission(
                type=submission.type,
                content=submission.content,
                description=submission.description,
                submitted_at=submission.submitted_at,
            )

        job = self._update_job(job_id, apply)
        log_transition("job", job_id, "submission_recorded", logger=logger, type=submission.type)
        return job

    def record_selection(self, job_id: str, freelancer: str) -> Job:
        def apply(job: Job) -> None:
            job.selected_freelancer = normalize_address(freelancer)

        return self._update_job(job_id, apply)

    def mark_completed(self, job_id: str) -> Job:
        """Set is_completed. Only call after an approve transition was confirmed.

        Raises:
            NotFoundError: unknown job
        """

        def apply(job: Job) -> None:
            job.is_completed = True

        job = self._update_job(job_id, apply)
        log_transition("job", job_id, "completed", logger=logger)
        return job

    def _update_job(self, job_id: str, apply: Callable[[Job], None]) -> Job:
        attempt = 0
        while True:
            attempt += 1
            job = self.get_job(job_id)
            apply(job)
            try:
                self.store.save_jobs([job])
                return job
            except ConflictError:
                if attempt >= MAX_FIELD_UPDATE_ATTEMPTS:
                    raise
                logger.warning(f"Job {job_id} changed concurrently, re-applying update")
