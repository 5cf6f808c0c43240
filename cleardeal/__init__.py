"""
ClearDeal - a freelance job marketplace with escrowed bounties.

Clients post jobs with a bounty, freelancers pay a small fee to apply, the
client selects one freelancer, reviews the submitted work and approves it
to release the bounty.
"""

from .errors import (
    ClearDealError,
    ConflictError,
    DuplicateApplicationError,
    NoSubmissionError,
    NotEligibleError,
    NotFoundError,
    NotSelectedError,
    SettlementError,
    ValidationError,
)
from .marketplace import Marketplace, build_marketplace

try:
    from importlib.metadata import version

    __version__ = version("cleardeal")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "Marketplace",
    "build_marketplace",
    "ClearDealError",
    "ValidationError",
    "NotFoundError",
    "DuplicateApplicationError",
    "NotEligibleError",
    "NotSelectedError",
    "NoSubmissionError",
    "ConflictError",
    "SettlementError",
]
