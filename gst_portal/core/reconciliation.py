from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional
import logging
import uuid

from gst_portal.core.config import Settings
from gst_portal.core.extraction import ExtractionClient
from gst_portal.core.filing import file_all
from gst_portal.core.government import GovernmentDataSource
from gst_portal.core.status import ReviewAction, apply_review, classify_initial
from gst_portal.db.repository import InvoiceRepository
from gst_portal.schemas.invoice import InvoiceRecord

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReconciliationService:
    """
    Commands behind the portal: upload-and-classify, manual review, and GSTR-3B filing.
    State is only ever read back from the repository, so callers see confirmed writes.
    """

    def __init__(
        self,
        repository: InvoiceRepository,
        extractor: ExtractionClient,
        government: GovernmentDataSource,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.extractor = extractor
        self.government = government
        self.tolerance = Decimal(str(settings.VARIANCE_TOLERANCE_PERCENT))
        self.clock = clock

    async def upload(
        self, tenant_id: str, content: bytes, media_type: str, file_name: Optional[str] = None
    ) -> InvoiceRecord:
        extracted = await self.extractor.extract(content, media_type, file_name)
        govt_data = await self.government.fetch(extracted)

        record = InvoiceRecord(
            **extracted.model_dump(),
            id=uuid.uuid4().hex,
            file_name=file_name,
            govt_data=govt_data,
            status=classify_initial(extracted.taxable_value, govt_data, self.tolerance),
            upload_time=self.clock(),
        )
        await self.repository.create(tenant_id, record)
        logger.info(f"Uploaded {file_name} as invoice {record.id} for tenant {tenant_id}: {record.status.value}")
        return await self.repository.get(tenant_id, record.id)

    async def review(self, tenant_id: str, invoice_id: str, action: ReviewAction) -> InvoiceRecord:
        record = await self.repository.get(tenant_id, invoice_id)
        reviewed = apply_review(record, action, self.clock())
        await self.repository.update(
            tenant_id,
            invoice_id,
            {"status": reviewed.status, "reconciliation_time": reviewed.reconciliation_time},
        )
        logger.info(f"Invoice {invoice_id} review '{action.value}': {record.status.value} -> {reviewed.status.value}")
        return await self.repository.get(tenant_id, invoice_id)

    async def file_gstr3b(self, tenant_id: str) -> List[str]:
        records = await self.repository.snapshot(tenant_id)
        return await file_all(self.repository, tenant_id, records, self.clock())
