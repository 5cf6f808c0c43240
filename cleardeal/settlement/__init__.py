"""Settlement subsystem for ClearDeal.

The boundary to the external payment collaborator that charges
application fees and releases bounties.

Modules:
- models.py: Receipt and its statuses
- service.py: SettlementClient protocol and SettlementGateway (timeouts, polling)
- ledger.py: LocalLedger, an in-process client
- http_client.py: HttpSettlementClient for a remote gateway
"""

from cleardeal.settlement.http_client import HttpSettlementClient
from cleardeal.settlement.ledger import LocalLedger
from cleardeal.settlement.models import Receipt, ReceiptKind, ReceiptStatus
from cleardeal.settlement.service import (
    SettlementClient,
    SettlementGateway,
    job_ref_bytes32,
)

__all__ = [
    "Receipt",
    "ReceiptKind",
    "ReceiptStatus",
    "SettlementClient",
    "SettlementGateway",
    "LocalLedger",
    "HttpSettlementClient",
    "job_ref_bytes32",
]
