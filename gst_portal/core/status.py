from datetime import datetime
from enum import Enum
from typing import Dict, Tuple

from gst_portal.core.errors import InvalidTransition
from gst_portal.core.variance import DEFAULT_TOLERANCE_PERCENT, Number, calculate_variance
from gst_portal.schemas.invoice import GovtData, InvoiceRecord, InvoiceStatus


class ReviewAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Manual review outcomes. Approval is an override: variance is not re-checked.
# Reconciled and Filed records accept no review action.
REVIEW_TRANSITIONS: Dict[Tuple[InvoiceStatus, ReviewAction], InvoiceStatus] = {
    (InvoiceStatus.PENDING, ReviewAction.APPROVE): InvoiceStatus.RECONCILED,
    (InvoiceStatus.PENDING, ReviewAction.REJECT): InvoiceStatus.MISMATCH,
    (InvoiceStatus.MISMATCH, ReviewAction.APPROVE): InvoiceStatus.RECONCILED,
    (InvoiceStatus.MISMATCH, ReviewAction.REJECT): InvoiceStatus.MISMATCH,
}

FILEABLE_FROM = frozenset({InvoiceStatus.RECONCILED, InvoiceStatus.MISMATCH})


def classify_initial(
    taxable_value: Number, govt_data: GovtData, tolerance: Number = DEFAULT_TOLERANCE_PERCENT
) -> InvoiceStatus:
    """Onboarding check on the taxable value pair only."""
    variance = calculate_variance(taxable_value, govt_data.taxable_value, tolerance)
    return InvoiceStatus.MISMATCH if variance.is_mismatch else InvoiceStatus.PENDING


def next_status(current: InvoiceStatus, action: ReviewAction) -> InvoiceStatus:
    try:
        return REVIEW_TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransition(current, action)


def apply_review(record: InvoiceRecord, action: ReviewAction, now: datetime) -> InvoiceRecord:
    status = next_status(record.status, action)
    return record.model_copy(update={"status": status, "reconciliation_time": now})


def mark_filed(record: InvoiceRecord, now: datetime) -> InvoiceRecord:
    if record.status not in FILEABLE_FROM:
        raise InvalidTransition(record.status, "file")
    return record.model_copy(update={"status": InvoiceStatus.FILED, "filing_date": now})
