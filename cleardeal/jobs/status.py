"""Freelancer-facing status of a job.

Computed from the freelancer's application on every call and never stored.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from cleardeal.jobs.models import Application, ApplicationStatus, Job, WorkStatus


class FreelancerStatus(Enum):
    NOT_APPLIED = "not_applied"
    FEE_PENDING = "fee_pending"
    PENDING_SELECTION = "pending_selection"
    REJECTED = "rejected"
    CAN_SUBMIT = "can_submit"
    WORK_SUBMITTED = "work_submitted"
    WORK_APPROVED = "work_approved"
    WORK_REJECTED = "work_rejected"
    UNKNOWN = "unknown"


_SELECTED_WORK_STATUS = {
    WorkStatus.NOT_STARTED.value: FreelancerStatus.CAN_SUBMIT,
    WorkStatus.IN_PROGRESS.value: FreelancerStatus.CAN_SUBMIT,
    WorkStatus.SUBMITTED.value: FreelancerStatus.WORK_SUBMITTED,
    WorkStatus.APPROVED.value: FreelancerStatus.WORK_APPROVED,
    WorkStatus.REJECTED.value: FreelancerStatus.WORK_REJECTED,
}


def resolve_status(job: Job, application: Optional[Application]) -> FreelancerStatus:
    """Map (status, has_paid_fee, work_status) of an application to a FreelancerStatus."""
    if application is None:
        return FreelancerStatus.NOT_APPLIED
    if application.job_id != job.id:
        raise ValueError(f"Application belongs to job {application.job_id}, not {job.id}")

    if not application.has_paid_fee:
        return FreelancerStatus.FEE_PENDING
    if application.status == ApplicationStatus.PENDING.value:
        return FreelancerStatus.PENDING_SELECTION
    if application.status == ApplicationStatus.REJECTED.value:
        return FreelancerStatus.REJECTED
    if application.status == ApplicationStatus.SELECTED.value:
        return _SELECTED_WORK_STATUS.get(application.work_status, FreelancerStatus.UNKNOWN)
    return FreelancerStatus.UNKNOWN


@dataclass(frozen=True)
class StatusMessage:
    title: str
    detail: str


STATUS_MESSAGES: Dict[FreelancerStatus, StatusMessage] = {
    FreelancerStatus.NOT_APPLIED: StatusMessage(
        "Open", "Pay the 10% application fee to apply"
    ),
    FreelancerStatus.FEE_PENDING: StatusMessage(
        "Fee Pending", "Your application fee has not been confirmed yet"
    ),
    FreelancerStatus.PENDING_SELECTION: StatusMessage(
        "Waiting for selection...", "The client is reviewing applications"
    ),
    FreelancerStatus.REJECTED: StatusMessage(
        "Not Selected", "The client selected another freelancer"
    ),
    FreelancerStatus.CAN_SUBMIT: StatusMessage(
        "Selected", "You were selected and can submit your work"
    ),
    FreelancerStatus.WORK_SUBMITTED: StatusMessage(
        "Work Submitted", "Your work is waiting for the client's review"
    ),
    FreelancerStatus.WORK_APPROVED: StatusMessage(
        "Work Approved!", "Payment has been released to your wallet"
    ),
    FreelancerStatus.WORK_REJECTED: StatusMessage(
        "Work Needs Revision", "Please revise and resubmit your work"
    ),
    FreelancerStatus.UNKNOWN: StatusMessage("Unknown", "This job's status could not be determined"),
}


def describe_status(status: FreelancerStatus) -> StatusMessage:
    return STATUS_MESSAGES[status]
