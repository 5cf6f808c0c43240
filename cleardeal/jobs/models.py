"""
Job and application data models.

A Job is a client-posted work item with an escrowed bounty. An Application
is a freelancer's fee-gated bid on one Job, keyed by (job_id, freelancer).
Status fields hold the enum *values* (plain strings) so records serialize
straight to JSON; enum members are accepted on construction.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple

APPLICATION_FEE_RATE = Decimal("0.10")
MAX_TITLE_LENGTH = 200


class ApplicationStatus(Enum):
    """The client's selection decision on an application."""

    PENDING = "pending"
    SELECTED = "selected"
    REJECTED = "rejected"


class WorkStatus(Enum):
    """Progress of the selected freelancer's work."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class SubmissionType(Enum):
    FILE = "file"
    LINK = "link"


class SettlementState(Enum):
    """Where the fee or payout attached to an application stands."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


# Work statuses from which the selected freelancer may (re)submit
SUBMITTABLE_WORK_STATUSES = frozenset(
    {
        WorkStatus.NOT_STARTED.value,
        WorkStatus.IN_PROGRESS.value,
        WorkStatus.REJECTED.value,
    }
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO string, a datetime, or epoch milliseconds into a UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Cannot parse datetime from {value!r}")


def to_amount(value: Any) -> Decimal:
    """Coerce a number or numeric string to a finite Decimal."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def format_amount(amount: Decimal, places: int = 3) -> str:
    quantum = Decimal(1).scaleb(-places)
    return str(to_amount(amount).quantize(quantum, rounding=ROUND_HALF_UP))


def application_fee(bounty: Any) -> Decimal:
    """The fee a freelancer pays to apply: a fixed 10% of the bounty."""
    return to_amount(bounty) * APPLICATION_FEE_RATE


def _enum_value(value: Any, enum_cls, field_name: str) -> str:
    if isinstance(value, enum_cls):
        return value.value
    valid = [e.value for e in enum_cls]
    if value not in valid:
        raise ValueError(f"Invalid {field_name}: {value}. Must be one of {valid}")
    return value


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key wins; lets records in the legacy camelCase layout load."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class Submission:
    """A piece of submitted work: a file reference or a link, with a description."""

    type: str
    content: str
    description: str = ""
    submitted_at: Optional[datetime] = None

    def __post_init__(self):
        self.type = _enum_value(self.type, SubmissionType, "submission type")
        if not isinstance(self.content, str) or not self.content.strip():
            raise ValueError("Submission content is required")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "content": self.content,
            "description": self.description,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Submission":
        return cls(
            type=data["type"],
            content=data["content"],
            description=data.get("description") or "",
            submitted_at=parse_datetime(_pick(data, "submitted_at", "submittedAt")),
        )


@dataclass
class Job:
    """A work listing with an escrowed bounty.

    ``bounty`` and ``client`` are fixed at creation. ``submission`` holds the
    latest submitted work only.
    """

    id: str
    client: str
    title: str
    description: str
    bounty: Decimal
    is_completed: bool = False
    selected_freelancer: Optional[str] = None
    submission: Optional[Submission] = None
    created_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self):
        self.bounty = to_amount(self.bounty)
        if self.bounty <= 0:
            raise ValueError("Bounty must be positive")
        if len(self.title) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")

    @property
    def is_open(self) -> bool:
        """Accepting applications: not completed and nobody selected yet."""
        return not self.is_completed and self.selected_freelancer is None

    @property
    def application_fee(self) -> Decimal:
        return application_fee(self.bounty)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "client": self.client,
            "title": self.title,
            "description": self.description,
            "bounty": str(self.bounty),
            "is_completed": self.is_completed,
            "selected_freelancer": self.selected_freelancer,
            "submission": self.submission.to_dict() if self.submission else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        submission = data.get("submission")
        if submission is None and _pick(data, "submissionContent", "githubLink"):
            # Legacy records kept the latest submission as flat fields
            submission = {
                "type": data.get("submissionType") or SubmissionType.LINK.value,
                "content": _pick(data, "submissionContent", "githubLink"),
                "description": data.get("workDescription") or "",
            }
        return cls(
            id=str(data["id"]),
            client=data["client"],
            title=data["title"],
            description=data["description"],
            bounty=data["bounty"],
            is_completed=bool(_pick(data, "is_completed", "isCompleted", default=False)),
            selected_freelancer=_pick(data, "selected_freelancer", "selectedFreelancer"),
            submission=Submission.from_dict(submission) if submission else None,
            created_at=parse_datetime(_pick(data, "created_at", "createdAt")),
            version=int(data.get("version", 0)),
        )


@dataclass
class Application:
    """A freelancer's application to a job.

    ``work_status`` only advances while ``status`` is ``selected``; rejected
    applications keep whatever work status they had.
    """

    job_id: str
    freelancer: str
    status: str = ApplicationStatus.PENDING.value
    work_status: str = WorkStatus.NOT_STARTED.value
    has_paid_fee: bool = True
    applied_at: Optional[datetime] = None
    submission_data: Optional[Submission] = None
    settlement_status: Optional[str] = None
    settlement_receipt: Optional[str] = None
    version: int = 0

    def __post_init__(self):
        self.status = _enum_value(self.status, ApplicationStatus, "status")
        self.work_status = _enum_value(self.work_status, WorkStatus, "work status")
        if self.settlement_status is not None:
            self.settlement_status = _enum_value(
                self.settlement_status, SettlementState, "settlement status"
            )

    @property
    def key(self) -> Tuple[str, str]:
        return (self.job_id, self.freelancer)

    @property
    def is_selected(self) -> bool:
        return self.status == ApplicationStatus.SELECTED.value

    @property
    def can_submit(self) -> bool:
        return self.is_selected and self.work_status in SUBMITTABLE_WORK_STATUSES

    @property
    def awaiting_review(self) -> bool:
        return self.is_selected and self.work_status == WorkStatus.SUBMITTED.value

    @property
    def settlement_pending(self) -> bool:
        return self.settlement_status == SettlementState.PENDING.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "freelancer": self.freelancer,
            "status": self.status,
            "work_status": self.work_status,
            "has_paid_fee": self.has_paid_fee,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
            "submission_data": self.submission_data.to_dict() if self.submission_data else None,
            "settlement_status": self.settlement_status,
            "settlement_receipt": self.settlement_receipt,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Application":
        submission = _pick(data, "submission_data", "submissionData")
        return cls(
            job_id=str(_pick(data, "job_id", "jobId")),
            freelancer=data["freelancer"],
            status=data.get("status") or ApplicationStatus.PENDING.value,
            work_status=_pick(
                data, "work_status", "workStatus", default=WorkStatus.NOT_STARTED.value
            ),
            # Records written before fees existed count as paid
            has_paid_fee=bool(_pick(data, "has_paid_fee", "hasPaidFee", default=True)),
            applied_at=parse_datetime(_pick(data, "applied_at", "appliedAt")),
            submission_data=Submission.from_dict(submission) if submission else None,
            settlement_status=data.get("settlement_status"),
            settlement_receipt=data.get("settlement_receipt"),
            version=int(data.get("version", 0)),
        )
