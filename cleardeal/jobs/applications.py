"""
Application lifecycle engine.

Drives an application through the state machine

    (none) -> pending -> selected/in_progress -> selected/submitted -> selected/approved
                 \\-> rejected                         \\-> selected/rejected -> selected/submitted ...

Transitions that move money (apply charges a fee, approve releases the
bounty) are written as provisional first, with ``settlement_status`` set to
``pending``. That write claims the record: any concurrent attempt on the same
record fails its version check. The transition is committed only once the
settlement gateway confirms, and rolled back if settlement fails, times
out, is cancelled by the payer, or the awaiting task is cancelled.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from cleardeal.errors import (
    ConflictError,
    DuplicateApplicationError,
    NoSubmissionError,
    NotEligibleError,
    NotFoundError,
    NotSelectedError,
    SettlementError,
    ValidationError,
)
from cleardeal.identity import normalize_address, require_caller, same_identity
from cleardeal.jobs.models import (
    Application,
    ApplicationStatus,
    Job,
    SettlementState,
    Submission,
    WorkStatus,
    to_amount,
    utc_now,
)
from cleardeal.jobs.service import MAX_FIELD_UPDATE_ATTEMPTS, JobService
from cleardeal.jobs.status import FreelancerStatus, resolve_status
from cleardeal.logging_config import log_transition
from cleardeal.storage.base import APPLICATIONS, EntityStore, application_record_id

if TYPE_CHECKING:
    from cleardeal.settlement.service import SettlementGateway

logger = logging.getLogger(__name__)


@dataclass
class FreelancerSummary:
    """Counts shown on a freelancer's dashboard."""

    available_jobs: int
    applications: int
    selected_jobs: int


class ApplicationService:
    """Application operations: apply, select, submit, approve, reject."""

    def __init__(self, store: EntityStore, jobs: JobService, settlement: "SettlementGateway"):
        self.store = store
        self.jobs = jobs
        self.settlement = settlement

    # === Reads ===

    def get_application(self, job_id: str, freelancer: str) -> Application:
        app = self.store.get_application(job_id, normalize_address(freelancer))
        if app is None:
            raise NotFoundError(f"No application from {freelancer} for job {job_id}")
        return app

    def list_applications(
        self,
        job_id: Optional[str] = None,
        freelancer: Optional[str] = None,
        status: Optional[Union[str, ApplicationStatus]] = None,
    ) -> List[Application]:
        apps = self.store.load_applications()
        if job_id is not None:
            apps = [a for a in apps if a.job_id == job_id]
        if freelancer is not None:
            apps = [a for a in apps if same_identity(a.freelancer, freelancer)]
        if status is not None:
            status_val = status.value if isinstance(status, ApplicationStatus) else status
            apps = [a for a in apps if a.status == status_val]
        apps.sort(key=lambda a: a.applied_at or utc_now())
        return apps

    def get_applications_for_job(self, job_id: str) -> List[Application]:
        return self.list_applications(job_id=job_id)

    def get_applications_for_freelancer(self, freelancer: str) -> List[Application]:
        return self.list_applications(freelancer=freelancer)

    def visible_applications(self, job_id: str, caller: str) -> List[Application]:
        """The job's client sees every application; anyone else only their own."""
        caller = require_caller(caller)
        job = self.jobs.get_job(job_id)
        if same_identity(job.client, caller):
            return self.get_applications_for_job(job.id)
        return self.list_applications(job_id=job.id, freelancer=caller)

    def status_for(self, job_id: str, freelancer: str) -> FreelancerStatus:
        job = self.jobs.get_job(job_id)
        return resolve_status(job, self.store.get_application(job.id, normalize_address(freelancer)))

    def freelancer_summary(self, freelancer: str) -> FreelancerSummary:
        freelancer = normalize_address(freelancer)
        available = [
            j for j in self.jobs.list_jobs(open_only=True) if not same_identity(j.client, freelancer)
        ]
        mine = self.get_applications_for_freelancer(freelancer)
        return FreelancerSummary(
            available_jobs=len(available),
            applications=len(mine),
            selected_jobs=sum(1 for a in mine if a.is_selected),
        )

    # === Apply ===

    async def apply(self, job_id: str, freelancer: str, bounty: Any = None) -> Application:
        """Pay the application fee and apply to a job.

        The fee is a fixed 10% of the job's bounty. ``bounty``, when given, is
        the amount the freelancer saw and must match the job.

        Raises:
            NotFoundError: unknown job
            NotEligibleError: the client applying to their own job, or the job is closed
            DuplicateApplicationError: the freelancer already applied
            SettlementError: the fee was not confirmed; the freelancer may apply again
        """
        freelancer = require_caller(freelancer)
        job = self.jobs.get_job(job_id)

        if same_identity(job.client, freelancer):
            raise NotEligibleError("Clients cannot apply to their own job")
        if job.is_completed:
            raise NotEligibleError(f"Job {job.id} is already completed")
        if job.selected_freelancer is not None:
            raise NotEligibleError(f"Job {job.id} is not accepting applications")
        if bounty is not None:
            try:
                seen = to_amount(bounty)
            except ValueError as e:
                raise ValidationError(str(e)) from None
            if seen != job.bounty:
                raise ValidationError(f"Bounty {seen} does not match job bounty {job.bounty}")

        app = self.store.get_application(job.id, freelancer)
        if app is not None:
            if app.has_paid_fee or app.settlement_pending:
                raise DuplicateApplicationError(
                    f"{freelancer} has already applied to job {job.id}"
                )
            logger.info(f"Retrying application fee | job={job.id} | freelancer={freelancer}")
        else:
            app = Application(
                job_id=job.id,
                freelancer=freelancer,
                status=ApplicationStatus.PENDING,
                work_status=WorkStatus.NOT_STARTED,
                has_paid_fee=False,
                applied_at=utc_now(),
            )

        app.settlement_status = SettlementState.PENDING.value
        try:
            self.store.save_applications([app])
        except ConflictError:
            raise DuplicateApplicationError(
                f"{freelancer} has already applied to job {job.id}"
            ) from None

        fee = job.application_fee
        try:
            receipt = await self.settlement.pay_fee(freelancer, fee, job_id=job.id)
        except (SettlementError, asyncio.CancelledError):
            self._release_claim(app, settlement_status=SettlementState.FAILED.value)
            raise

        app = self._commit_after_settlement(
            app,
            receipt.id,
            has_paid_fee=True,
            settlement_status=SettlementState.CONFIRMED.value,
            settlement_receipt=receipt.id,
        )

        log_transition(
            "application",
            application_record_id(*app.key),
            "applied",
            logger=logger,
            fee=fee,
            receipt=receipt.id,
        )
        return app

    # === Select ===

    def select(self, job_id: str, freelancer: str, caller: str) -> Application:
        """Select one applicant. Every other pending applicant is rejected in the same write.

        Raises:
            NotFoundError: unknown job or application
            NotEligibleError: caller is not the client, fee unpaid, or application not pending
            ConflictError: a fee for this job is still settling, or another writer
                changed one of the applications
        """
        caller = require_caller(caller)
        job = self.jobs.get_job(job_id)
        self._require_client(job, caller, "select a freelancer")
        if job.is_completed:
            raise NotEligibleError(f"Job {job.id} is already completed")

        target = self.get_application(job.id, freelancer)
        if not target.has_paid_fee:
            raise NotEligibleError("Application fee has not been paid")
        if target.status != ApplicationStatus.PENDING.value:
            raise NotEligibleError(f"Application is {target.status}, not pending")

        siblings = self.get_applications_for_job(job.id)
        in_flight = [a for a in siblings if a.settlement_pending]
        if in_flight:
            raise ConflictError(
                APPLICATIONS,
                application_record_id(*in_flight[0].key),
                message=f"An application fee for job {job.id} is still settling",
            )
        rivals = [
            a
            for a in siblings
            if a.key != target.key and a.status == ApplicationStatus.PENDING.value
        ]

        target.status = ApplicationStatus.SELECTED.value
        target.work_status = WorkStatus.IN_PROGRESS.value
        for rival in rivals:
            rival.status = ApplicationStatus.REJECTED.value

        self.store.save_applications([target, *rivals])
        self.jobs.record_selection(job.id, target.freelancer)

        log_transition(
            "application",
            application_record_id(*target.key),
            "selected",
            logger=logger,
            rejected=len(rivals),
        )
        return target

    # === Submit ===

    def submit_work(
        self,
        job_id: str,
        freelancer: str,
        submission: Union[Submission, Dict[str, Any]],
    ) -> Application:
        """Submit (or resubmit after rejection) work for review.

        Raises:
            ValidationError: malformed submission
            NotFoundError: unknown job
            NotSelectedError: no selected application in a submittable state
        """
        freelancer = require_caller(freelancer)
        submission = self._coerce_submission(submission)
        job = self.jobs.get_job(job_id)

        app = self.store.get_application(job.id, freelancer)
        if app is None or not app.is_selected:
            raise NotSelectedError("You must be selected for this job first")
        if not app.can_submit:
            raise NotSelectedError(f"Cannot submit work while work status is {app.work_status}")

        app.work_status = WorkStatus.SUBMITTED.value
        app.submission_data = Submission(
            type=submission.type,
            content=submission.content,
            description=submission.description,
            submitted_at=utc_now(),
        )
        self.store.save_applications([app])
        self.jobs.record_submission(job.id, app.submission_data)

        log_transition(
            "application",
            application_record_id(*app.key),
            "submitted",
            logger=logger,
            type=submission.type,
        )
        return app

    # === Review ===

    async def approve_work(self, job_id: str, caller: str) -> Application:
        """Approve the submitted work and release the bounty to the freelancer.

        Raises:
            NotFoundError: unknown job
            NotEligibleError: caller is not the client
            NoSubmissionError: nothing awaiting review
            ConflictError: a settlement for this job is already in flight
            SettlementError: the bounty was not released; the work stays submitted
        """
        caller = require_caller(caller)
        job = self.jobs.get_job(job_id)
        self._require_client(job, caller, "approve work")
        app = self._awaiting_review(job)

        app.settlement_status = SettlementState.PENDING.value
        self.store.save_applications([app])

        try:
            receipt = await self.settlement.release_bounty(job.id, app.freelancer, job.bounty)
        except (SettlementError, asyncio.CancelledError):
            self._release_claim(app, settlement_status=SettlementState.FAILED.value)
            raise

        app = self._commit_after_settlement(
            app,
            receipt.id,
            work_status=WorkStatus.APPROVED.value,
            settlement_status=SettlementState.CONFIRMED.value,
            settlement_receipt=receipt.id,
        )
        self.jobs.mark_completed(job.id)

        log_transition(
            "application",
            application_record_id(*app.key),
            "approved",
            logger=logger,
            bounty=job.bounty,
            receipt=receipt.id,
        )
        return app

    def reject_work(self, job_id: str, caller: str) -> Application:
        """Send the submitted work back for revision.

        Raises:
            NotFoundError: unknown job
            NotEligibleError: caller is not the client
            NoSubmissionError: nothing awaiting review
            ConflictError: a settlement for this job is in flight
        """
        caller = require_caller(caller)
        job = self.jobs.get_job(job_id)
        self._require_client(job, caller, "reject work")
        app = self._awaiting_review(job)

        app.work_status = WorkStatus.REJECTED.value
        self.store.save_applications([app])

        log_transition(
            "application", application_record_id(*app.key), "work_rejected", logger=logger
        )
        return app

    # === Helpers ===

    @staticmethod
    def _require_client(job: Job, caller: str, action: str) -> None:
        if not same_identity(job.client, caller):
            logger.debug(f"Rejected {action} on job {job.id} by non-client {caller}")
            raise NotEligibleError(f"Only the client can {action}")

    def _awaiting_review(self, job: Job) -> Application:
        submitted = [a for a in self.get_applications_for_job(job.id) if a.awaiting_review]
        if len(submitted) != 1:
            raise NoSubmissionError(f"No submitted work to review for job {job.id}")
        app = submitted[0]
        if app.settlement_pending:
            raise ConflictError(
                APPLICATIONS,
                application_record_id(*app.key),
                message=f"A settlement for job {job.id} is already in progress",
            )
        return app

    @staticmethod
    def _coerce_submission(submission: Union[Submission, Dict[str, Any]]) -> Submission:
        if isinstance(submission, Submission):
            return submission
        if not isinstance(submission, dict):
            raise ValidationError("Submission must have type, content and description")
        try:
            return Submission(
                type=submission.get("type"),
                content=submission.get("content"),
                description=submission.get("description") or "",
            )
        except ValueError as e:
            raise ValidationError(str(e)) from None

    def _release_claim(self, app: Application, **changes: Any) -> None:
        """Undo a provisional write after settlement did not confirm."""
        try:
            self._merge_save(app, changes)
        except ConflictError:
            logger.error(
                f"Could not roll back provisional application "
                f"{application_record_id(*app.key)}; record changed concurrently"
            )

    def _commit_after_settlement(
        self, app: Application, receipt_id: str, **changes: Any
    ) -> Application:
        """Record a confirmed settlement on the latest version of the application."""
        try:
            return self._merge_save(app, changes)
        except ConflictError:
            logger.error(
                f"Settlement {receipt_id} confirmed but application "
                f"{application_record_id(*app.key)} could not be updated"
            )
            raise

    def _merge_save(self, app: Application, changes: Dict[str, Any]) -> Application:
        """Set ``changes`` on the application and save it.

        On a version conflict the stored record is re-read and the same
        fields are applied to it, so other writers' fields are kept.
        """
        attempt = 0
        while True:
            attempt += 1
            for name, value in changes.items():
                setattr(app, name, value)
            try:
                self.store.save_applications([app])
                return app
            except ConflictError:
                fresh = self.store.get_application(*app.key)
                if fresh is None or attempt >= MAX_FIELD_UPDATE_ATTEMPTS:
                    raise
                logger.warning(
                    f"Application {application_record_id(*app.key)} changed concurrently, "
                    f"re-applying {', '.join(changes)}"
                )
                app = fresh
