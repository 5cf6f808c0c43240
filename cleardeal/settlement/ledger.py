"""In-process settlement ledger.

Stands in for the payment network in tests and local use. Every call
produces a receipt; by default receipts confirm immediately. Outcomes for
the next calls can be scripted to exercise failure, payer cancellation and
payments that never confirm.
"""

import asyncio
import logging
import uuid
from collections import deque
from decimal import Decimal
from typing import Deque, Dict, List, Optional

from .models import Receipt, ReceiptKind, ReceiptStatus

logger = logging.getLogger(__name__)


class LocalLedger:
    """SettlementClient that records receipts in memory."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.receipts: Dict[str, Receipt] = {}
        self._scripted: Deque[tuple] = deque()

    # === Scripting ===

    def fail_next(self, error: str = "insufficient funds") -> None:
        self._scripted.append((ReceiptStatus.FAILED, error))

    def cancel_next(self) -> None:
        self._scripted.append((ReceiptStatus.CANCELLED, "rejected by payer"))

    def hold_next(self) -> None:
        """Leave the next receipt pending until confirm() or fail() is called."""
        self._scripted.append((ReceiptStatus.PENDING, None))

    def confirm(self, receipt_id: str) -> Receipt:
        return self._finalize(receipt_id, ReceiptStatus.CONFIRMED)

    def fail(self, receipt_id: str, error: str = "reverted") -> Receipt:
        return self._finalize(receipt_id, ReceiptStatus.FAILED, error)

    # === SettlementClient ===

    async def pay_fee(self, payer: str, amount: Decimal, job_id: Optional[str] = None) -> Receipt:
        return await self._record(ReceiptKind.FEE, amount, payer=payer, job_id=job_id)

    async def release_bounty(self, job_id: str, to: str, amount: Decimal) -> Receipt:
        return await self._record(ReceiptKind.BOUNTY, amount, payee=to, job_id=job_id)

    async def get_receipt(self, receipt_id: str) -> Receipt:
        if receipt_id not in self.receipts:
            raise KeyError(f"Unknown receipt: {receipt_id}")
        return self.receipts[receipt_id]

    # === Queries ===

    def confirmed(self, kind: Optional[str] = None) -> List[Receipt]:
        return [
            r for r in self.receipts.values() if r.confirmed and (kind is None or r.kind == kind)
        ]

    def paid_to(self, address: str) -> Decimal:
        """Total confirmed bounty released to an address."""
        return sum(
            (r.amount for r in self.confirmed(ReceiptKind.BOUNTY.value) if r.payee == address),
            Decimal("0"),
        )

    def fees_from(self, address: str) -> Decimal:
        return sum(
            (r.amount for r in self.confirmed(ReceiptKind.FEE.value) if r.payer == address),
            Decimal("0"),
        )

    # === Internals ===

    async def _record(self, kind: ReceiptKind, amount: Decimal, **fields) -> Receipt:
        if self.delay:
            await asyncio.sleep(self.delay)

        status, error = (
            self._scripted.popleft() if self._scripted else (ReceiptStatus.CONFIRMED, None)
        )
        receipt = Receipt(
            id=f"rcpt_{uuid.uuid4().hex[:16]}",
            kind=kind,
            status=status,
            amount=amount,
            error=error,
            **fields,
        )
        self.receipts[receipt.id] = receipt
        logger.debug(f"Ledger recorded {receipt.kind} {receipt.amount} as {receipt.status}")
        return receipt

    def _finalize(self, receipt_id: str, status: ReceiptStatus, error: Optional[str] = None):
        receipt = self.receipts[receipt_id]
        receipt.status = status.value
        receipt.error = error
        return receipt
