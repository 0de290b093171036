from decimal import Decimal
from typing import Callable, Dict, Iterable

from gst_portal.core.filing import can_file
from gst_portal.schemas.invoice import InvoiceRecord, InvoiceStatus, ZERO, quantize_cents
from gst_portal.schemas.summary import DashboardSummary, FilingSummary

# Every status must appear here; a new status without an entry fails loudly.
DASHBOARD_BUCKETS: Dict[InvoiceStatus, str] = {
    InvoiceStatus.PENDING: "pending",
    InvoiceStatus.RECONCILED: "reconciled",
    InvoiceStatus.MISMATCH: "mismatch",
    InvoiceStatus.FILED: "filed",
}

ITC_ELIGIBLE: Dict[InvoiceStatus, bool] = {
    InvoiceStatus.PENDING: False,
    InvoiceStatus.RECONCILED: True,
    InvoiceStatus.MISMATCH: False,
    InvoiceStatus.FILED: False,
}


def _lookup(table: Dict[InvoiceStatus, object], status: InvoiceStatus):
    if status not in table:
        raise ValueError(f"Unhandled invoice status: {status!r}")
    return table[status]


def _total(records: Iterable[InvoiceRecord], amount: Callable[[InvoiceRecord], Decimal]) -> Decimal:
    return sum((amount(r) for r in records), ZERO)


def dashboard_summary(records: Iterable[InvoiceRecord]) -> DashboardSummary:
    records = list(records)
    counts = {bucket: 0 for bucket in DASHBOARD_BUCKETS.values()}
    for record in records:
        counts[_lookup(DASHBOARD_BUCKETS, record.status)] += 1

    return DashboardSummary(
        total_invoices=len(records),
        total_value=_total(records, lambda r: r.taxable_value),
        total_itc=_total(records, lambda r: r.igst),
        **counts,
    )


def filing_summary(records: Iterable[InvoiceRecord]) -> FilingSummary:
    """
    Totals for the next GSTR-3B return.
    Only strictly Reconciled invoices contribute to eligible ITC.
    """
    records = list(records)
    unfiled = [r for r in records if r.status != InvoiceStatus.FILED]
    eligible = [r for r in records if _lookup(ITC_ELIGIBLE, r.status)]
    pending = sum(1 for r in records if r.status == InvoiceStatus.PENDING)
    mismatch = sum(1 for r in records if r.status == InvoiceStatus.MISMATCH)

    return FilingSummary(
        total_taxable=_total(unfiled, lambda r: r.taxable_value),
        eligible_itc=_total(eligible, lambda r: r.igst),
        pending=pending,
        mismatch=mismatch,
        can_file=can_file(records),
    )


def format_inr(amount) -> str:
    value = quantize_cents(Decimal(str(amount)))
    return f"₹ {value:,.2f}"
