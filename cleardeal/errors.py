"""Error types raised by the ClearDeal engines.

Every precondition failure is raised synchronously to the caller. Nothing in
the engines retries on its own, settlement calls included.
"""

from typing import Optional


class ClearDealError(Exception):
    """Base error for ClearDeal operations."""

    pass


class ValidationError(ClearDealError, ValueError):
    """Bad input shape or values."""

    pass


class NotFoundError(ClearDealError, LookupError):
    """Unknown job or application."""

    pass


class DuplicateApplicationError(ClearDealError):
    """A freelancer already holds an application for the job."""

    pass


class NotEligibleError(ClearDealError):
    """Caller may not perform the action (wrong role, fee unpaid, closed job)."""

    pass


class NotSelectedError(ClearDealError):
    """Work submitted by a freelancer who is not in a submittable state."""

    pass


class NoSubmissionError(ClearDealError):
    """Approve or reject attempted with no submitted work to review."""

    pass


class ConflictError(ClearDealError):
    """Raised when a record's version doesn't match the stored version.

    Another writer changed the record between our read and our write. The
    whole save is rejected; callers re-read and decide whether to retry.
    """

    def __init__(
        self,
        collection: str,
        record_id: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        message: Optional[str] = None,
    ):
        self.collection = collection
        self.record_id = record_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        if message is None:
            message = (
                f"Version conflict on {collection}/{record_id}: "
                f"expected version {expected_version}, found {actual_version}"
            )
        super().__init__(message)


class SettlementError(ClearDealError):
    """The settlement collaborator failed, timed out, or the payer cancelled."""

    FAILED = "failed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    def __init__(self, message: str, reason: str = FAILED, receipt=None):
        self.reason = reason
        self.receipt = receipt
        super().__init__(message)
