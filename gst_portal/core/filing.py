from datetime import datetime
from typing import Iterable, List
import asyncio
import logging

from gst_portal.core.errors import FilingBlocked, PartialFilingFailure
from gst_portal.core.status import mark_filed
from gst_portal.db.repository import InvoiceRepository
from gst_portal.schemas.invoice import InvoiceRecord, InvoiceStatus

logger = logging.getLogger(__name__)

BLOCKING_STATUSES = frozenset({InvoiceStatus.PENDING, InvoiceStatus.MISMATCH})


def blocking_records(records: Iterable[InvoiceRecord]) -> List[InvoiceRecord]:
    return [r for r in records if r.status in BLOCKING_STATUSES]


def can_file(records: Iterable[InvoiceRecord]) -> bool:
    """True when every invoice is Reconciled or already Filed. An empty collection can be filed."""
    return not blocking_records(records)


async def file_all(
    repository: InvoiceRepository,
    tenant_id: str,
    records: Iterable[InvoiceRecord],
    now: datetime,
) -> List[str]:
    """
    Move every unfiled invoice to Filed. Refuses outright while anything is
    Pending or Mismatch. Updates run concurrently and are not rolled back:
    if some fail, PartialFilingFailure reports both sides.
    """
    records = list(records)
    blocked = blocking_records(records)
    if blocked:
        pending = sum(1 for r in blocked if r.status == InvoiceStatus.PENDING)
        raise FilingBlocked(pending=pending, mismatch=len(blocked) - pending)

    to_file = [mark_filed(r, now) for r in records if r.status != InvoiceStatus.FILED]
    results = await asyncio.gather(
        *(
            repository.update(tenant_id, r.id, {"status": r.status, "filing_date": r.filing_date})
            for r in to_file
        ),
        return_exceptions=True,
    )

    filed_ids, failed_ids = [], []
    for record, result in zip(to_file, results):
        if isinstance(result, BaseException):
            logger.error(f"Filing update failed for invoice {record.id}: {result}")
            failed_ids.append(record.id)
        else:
            filed_ids.append(record.id)

    if failed_ids:
        raise PartialFilingFailure(filed_ids, failed_ids)

    logger.info(f"GSTR-3B filed for tenant {tenant_id}: {len(filed_ids)} invoices")
    return filed_ids
