"""Request and response models for the HTTP API."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from cleardeal.jobs.applications import FreelancerSummary
from cleardeal.jobs.models import MAX_TITLE_LENGTH, Application, Job, Submission
from cleardeal.jobs.service import ClientSummary
from cleardeal.jobs.status import FreelancerStatus, describe_status

SubmissionTypeName = Literal["file", "link"]
ApplicationStatusName = Literal["pending", "selected", "rejected"]
WorkStatusName = Literal["not_started", "in_progress", "submitted", "approved", "rejected"]


# =============================================================================
# Requests
# =============================================================================


class JobCreate(BaseModel):
    """Request to post a job."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: str = Field(..., min_length=1)
    bounty: Decimal = Field(..., gt=0)

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class ApplyRequest(BaseModel):
    """Optional body for an application: the bounty the freelancer saw."""

    bounty: Decimal | None = Field(None, gt=0)


class SelectRequest(BaseModel):
    freelancer: str = Field(..., min_length=1)


class SubmissionCreate(BaseModel):
    """Request to submit work."""

    type: SubmissionTypeName
    content: str = Field(..., min_length=1)
    description: str = ""


# =============================================================================
# Responses
# =============================================================================


class SubmissionResponse(BaseModel):
    type: SubmissionTypeName
    content: str
    description: str
    submitted_at: datetime | None = None

    @classmethod
    def from_submission(cls, submission: Submission | None) -> "SubmissionResponse | None":
        if submission is None:
            return None
        return cls(
            type=submission.type,
            content=submission.content,
            description=submission.description,
            submitted_at=submission.submitted_at,
        )


class JobResponse(BaseModel):
    """Job details response."""

    id: str
    client: str
    title: str
    description: str
    bounty: Decimal
    application_fee: Decimal
    is_completed: bool
    is_open: bool
    selected_freelancer: str | None = None
    submission: SubmissionResponse | None = None
    created_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(
            id=job.id,
            client=job.client,
            title=job.title,
            description=job.description,
            bounty=job.bounty,
            application_fee=job.application_fee,
            is_completed=job.is_completed,
            is_open=job.is_open,
            selected_freelancer=job.selected_freelancer,
            submission=SubmissionResponse.from_submission(job.submission),
            created_at=job.created_at,
        )


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int


class ApplicationResponse(BaseModel):
    """Application details response."""

    job_id: str
    freelancer: str
    status: ApplicationStatusName
    work_status: WorkStatusName
    has_paid_fee: bool
    applied_at: datetime | None = None
    submission_data: SubmissionResponse | None = None
    settlement_status: str | None = None
    settlement_receipt: str | None = None

    @classmethod
    def from_application(cls, app: Application) -> "ApplicationResponse":
        return cls(
            job_id=app.job_id,
            freelancer=app.freelancer,
            status=app.status,
            work_status=app.work_status,
            has_paid_fee=app.has_paid_fee,
            applied_at=app.applied_at,
            submission_data=SubmissionResponse.from_submission(app.submission_data),
            settlement_status=app.settlement_status,
            settlement_receipt=app.settlement_receipt,
        )


class ApplicationListResponse(BaseModel):
    applications: list[ApplicationResponse]
    total: int


class StatusResponse(BaseModel):
    """A freelancer's derived status on a job."""

    job_id: str
    freelancer: str
    status: str
    title: str
    detail: str

    @classmethod
    def build(cls, job_id: str, freelancer: str, status: FreelancerStatus) -> "StatusResponse":
        message = describe_status(status)
        return cls(
            job_id=job_id,
            freelancer=freelancer,
            status=status.value,
            title=message.title,
            detail=message.detail,
        )


class SummaryResponse(BaseModel):
    """Dashboard counts for one address, as client and as freelancer."""

    address: str
    jobs_posted: int
    total_applications: int
    completed_jobs: int
    available_jobs: int
    applications: int
    selected_jobs: int

    @classmethod
    def build(
        cls, address: str, client: ClientSummary, freelancer: FreelancerSummary
    ) -> "SummaryResponse":
        return cls(
            address=address,
            jobs_posted=client.jobs_posted,
            total_applications=client.total_applications,
            completed_jobs=client.completed_jobs,
            available_jobs=freelancer.available_jobs,
            applications=freelancer.applications,
            selected_jobs=freelancer.selected_jobs,
        )


class ErrorResponse(BaseModel):
    detail: str
    error: str
    reason: str | None = None
