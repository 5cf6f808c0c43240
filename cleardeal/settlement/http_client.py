"""HTTP settlement client.

Talks JSON to a settlement gateway service:

    POST {base_url}/fees       {"payer", "amount", "job_ref"}  -> receipt
    POST {base_url}/payouts    {"job_ref", "to", "amount"}     -> receipt
    GET  {base_url}/receipts/{id}                              -> receipt
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from .models import Receipt
from .service import job_ref_bytes32

logger = logging.getLogger(__name__)


class HttpSettlementClient:
    """SettlementClient backed by an HTTP gateway."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def pay_fee(self, payer: str, amount: Decimal, job_id: Optional[str] = None) -> Receipt:
        body = {"payer": payer, "amount": str(amount)}
        if job_id is not None:
            body["job_ref"] = job_ref_bytes32(job_id)
        receipt = await self._request("POST", "/fees", json=body)
        if receipt.job_id is None:
            receipt.job_id = job_id
        return receipt

    async def release_bounty(self, job_id: str, to: str, amount: Decimal) -> Receipt:
        body = {"job_ref": job_ref_bytes32(job_id), "to": to, "amount": str(amount)}
        receipt = await self._request("POST", "/payouts", json=body)
        if receipt.job_id is None:
            receipt.job_id = job_id
        return receipt

    async def get_receipt(self, receipt_id: str) -> Receipt:
        return await self._request("GET", f"/receipts/{receipt_id}")

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None):
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.request(method, path, json=json)
            except httpx.TimeoutException as e:
                raise TimeoutError(f"Settlement gateway timed out on {method} {path}") from e
            response.raise_for_status()
            data = response.json()

        logger.debug(f"{method} {path} -> {data.get('status')}")
        return Receipt.from_dict(data)
