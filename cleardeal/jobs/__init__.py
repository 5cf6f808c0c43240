"""Jobs marketplace subsystem for ClearDeal.

Models:
- Job: A work listing with an escrowed bounty
- Application: A freelancer's fee-gated application to a job
- Submission: Submitted work (file reference or link)

Services:
- JobService: Job operations (create, list, job-side effects of transitions)
- ApplicationService: Application operations (apply, select, submit, approve, reject)

Status:
- resolve_status: The freelancer-facing status of a job
"""

from cleardeal.jobs.applications import ApplicationService, FreelancerSummary
from cleardeal.jobs.models import (
    APPLICATION_FEE_RATE,
    Application,
    ApplicationStatus,
    Job,
    SettlementState,
    Submission,
    SubmissionType,
    WorkStatus,
    application_fee,
    format_amount,
)
from cleardeal.jobs.service import ClientSummary, JobService
from cleardeal.jobs.status import FreelancerStatus, StatusMessage, describe_status, resolve_status

__all__ = [
    # Models
    "Job",
    "Application",
    "Submission",
    "ApplicationStatus",
    "WorkStatus",
    "SubmissionType",
    "SettlementState",
    "APPLICATION_FEE_RATE",
    "application_fee",
    "format_amount",
    # Services
    "JobService",
    "ClientSummary",
    "ApplicationService",
    "FreelancerSummary",
    # Status
    "FreelancerStatus",
    "StatusMessage",
    "resolve_status",
    "describe_status",
]
