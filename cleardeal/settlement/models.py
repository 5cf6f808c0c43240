"""Settlement receipts."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from cleardeal.jobs.models import parse_datetime, to_amount, utc_now


class ReceiptStatus(Enum):
    """Outcome reported by the settlement collaborator."""

    PENDING = "pending"  # submitted, not final yet
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"  # payer declined before confirmation


class ReceiptKind(Enum):
    FEE = "fee"
    BOUNTY = "bounty"


@dataclass
class Receipt:
    """A fee payment or bounty release as reported by the collaborator."""

    id: str
    kind: str
    status: str
    amount: Decimal
    payer: Optional[str] = None
    payee: Optional[str] = None
    job_id: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if isinstance(self.kind, ReceiptKind):
            self.kind = self.kind.value
        if isinstance(self.status, ReceiptStatus):
            self.status = self.status.value
        self.amount = to_amount(self.amount)

    @property
    def is_final(self) -> bool:
        return self.status != ReceiptStatus.PENDING.value

    @property
    def confirmed(self) -> bool:
        return self.status == ReceiptStatus.CONFIRMED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "status": self.status,
            "amount": str(self.amount),
            "payer": self.payer,
            "payee": self.payee,
            "job_id": self.job_id,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Receipt":
        return cls(
            id=data["id"],
            kind=data["kind"],
            status=ReceiptStatus(data["status"]).value,
            amount=data["amount"],
            payer=data.get("payer"),
            payee=data.get("payee"),
            job_id=data.get("job_id"),
            error=data.get("error"),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )
