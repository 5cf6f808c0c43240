"""
Settlement gateway.

The engines never move money themselves. They ask a SettlementClient to
charge an application fee or release a bounty, and the gateway turns
whatever the client reports into one of two outcomes: a confirmed Receipt,
or a SettlementError whose ``reason`` says whether the payment failed, timed
out, or was cancelled by the payer. A pending receipt is polled until it
becomes final or the timeout expires; it is never treated as success.
"""

import asyncio
import hashlib
import logging
import uuid
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

from cleardeal.errors import SettlementError

from .models import Receipt, ReceiptStatus

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 0.5


@runtime_checkable
class SettlementClient(Protocol):
    """Protocol for the external payment collaborator."""

    async def pay_fee(self, payer: str, amount: Decimal, job_id: Optional[str] = None) -> Receipt:
        """Charge an application fee to ``payer``."""
        ...

    async def release_bounty(self, job_id: str, to: str, amount: Decimal) -> Receipt:
        """Release a job's escrowed bounty to ``to``."""
        ...

    async def get_receipt(self, receipt_id: str) -> Receipt:
        """Fetch the current state of a previously returned receipt."""
        ...


def job_ref_bytes32(job_id: str) -> str:
    """Encode a job id as a 0x-prefixed 32-byte hex reference.

    Numeric ids are hex-encoded and left-padded, UUIDs use their 128-bit
    value, anything else is hashed.
    """
    job_id = str(job_id)
    if job_id.isdigit():
        value = int(job_id)
        if value.bit_length() <= 256:
            return "0x" + format(value, "x").rjust(64, "0")
    try:
        return "0x" + uuid.UUID(job_id).hex.rjust(64, "0")
    except ValueError:
        return "0x" + hashlib.sha256(job_id.encode("utf-8")).hexdigest()


class SettlementGateway:
    """Runs settlement calls with a deadline and normalizes their outcome."""

    def __init__(
        self,
        client: SettlementClient,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.client = client
        self.timeout = timeout
        self.poll_interval = poll_interval

    async def pay_fee(self, payer: str, amount: Decimal, job_id: Optional[str] = None) -> Receipt:
        return await self._settle(
            f"fee payment of {amount} from {payer}",
            lambda: self.client.pay_fee(payer, amount, job_id=job_id),
        )

    async def release_bounty(self, job_id: str, to: str, amount: Decimal) -> Receipt:
        return await self._settle(
            f"bounty release of {amount} to {to} for job {job_id}",
            lambda: self.client.release_bounty(job_id, to, amount),
        )

    async def _settle(self, description: str, call: Callable[[], Awaitable[Receipt]]) -> Receipt:
        try:
            receipt = await asyncio.wait_for(self._run(description, call), timeout=self.timeout)
        except (asyncio.TimeoutError, TimeoutError):
            logger.warning(f"Settlement timed out after {self.timeout}s: {description}")
            raise SettlementError(
                f"Settlement timed out: {description}", reason=SettlementError.TIMEOUT
            ) from None

        logger.info(f"Settlement confirmed | receipt={receipt.id} | {description}")
        return receipt

    async def _run(self, description: str, call: Callable[[], Awaitable[Receipt]]) -> Receipt:
        receipt = await self._invoke(description, call)

        while receipt.status == ReceiptStatus.PENDING.value:
            await asyncio.sleep(self.poll_interval)
            receipt_id = receipt.id
            receipt = await self._invoke(description, lambda: self.client.get_receipt(receipt_id))

        if receipt.status == ReceiptStatus.CONFIRMED.value:
            return receipt

        if receipt.status == ReceiptStatus.CANCELLED.value:
            logger.warning(f"Settlement cancelled by payer: {description}")
            raise SettlementError(
                f"Settlement cancelled: {description}",
                reason=SettlementError.CANCELLED,
                receipt=receipt,
            )

        logger.warning(f"Settlement failed: {description}: {receipt.error}")
        raise SettlementError(
            f"Settlement failed: {description}"
            + (f" ({receipt.error})" if receipt.error else ""),
            reason=SettlementError.FAILED,
            receipt=receipt,
        )

    async def _invoke(self, description: str, call: Callable[[], Awaitable[Receipt]]) -> Receipt:
        try:
            return await call()
        except SettlementError:
            raise
        except (asyncio.TimeoutError, TimeoutError):
            raise
        except Exception as e:
            logger.warning(f"Settlement call raised {type(e).__name__}: {description}: {e}")
            raise SettlementError(
                f"Settlement failed: {description} ({e})", reason=SettlementError.FAILED
            ) from e
