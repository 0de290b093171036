from fastapi import APIRouter, Depends, File, UploadFile, HTTPException, Header
from typing import List, Optional
import logging

from gst_portal.api.deps import get_service, get_settings
from gst_portal.core.config import Settings
from gst_portal.core.errors import ExtractionFailure, InvalidTransition, PersistenceFailure, RecordNotFound
from gst_portal.core.extraction import is_supported_media_type
from gst_portal.core.reconciliation import ReconciliationService
from gst_portal.core.status import ReviewAction
from gst_portal.core.variance import invoice_variances
from gst_portal.schemas.invoice import InvoiceStatus
from gst_portal.schemas.reconciliation import InvoiceDetail, InvoiceRow

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/invoices/upload", response_model=InvoiceDetail, status_code=201)
async def upload_invoice(
    file: UploadFile = File(...),
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
    settings: Settings = Depends(get_settings),
):
    if not is_supported_media_type(file.content_type):
        raise HTTPException(status_code=400, detail="Invalid file format. Upload an image or a PDF.")

    too_large = HTTPException(status_code=413, detail=f"File exceeds {settings.MAX_UPLOAD_BYTES} bytes")
    if file.size is not None and file.size > settings.MAX_UPLOAD_BYTES:
        raise too_large

    # One byte past the limit is enough to tell it was exceeded
    content = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise too_large

    logger.info(f"Processing {file.filename} for tenant {x_tenant_id}")
    try:
        record = await service.upload(x_tenant_id, content, file.content_type, file.filename)
    except ExtractionFailure as e:
        logger.error(f"Upload and extraction failed for {file.filename}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except PersistenceFailure as e:
        logger.error(f"Could not save invoice from {file.filename}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return InvoiceDetail.build(record, invoice_variances(record, service.tolerance))


@router.get("/invoices", response_model=List[InvoiceRow])
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    predicate = (lambda r: r.status == status) if status else None
    records = await service.repository.snapshot(x_tenant_id, predicate)
    return [InvoiceRow.build(r, invoice_variances(r, service.tolerance)) for r in records]


@router.get("/invoices/{invoice_id}", response_model=InvoiceDetail)
async def get_invoice(
    invoice_id: str,
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    try:
        record = await service.repository.get(x_tenant_id, invoice_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return InvoiceDetail.build(record, invoice_variances(record, service.tolerance))


async def _review(service: ReconciliationService, tenant_id: str, invoice_id: str, action: ReviewAction) -> InvoiceDetail:
    try:
        record = await service.review(tenant_id, invoice_id, action)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PersistenceFailure as e:
        logger.error(f"Failed to update invoice status: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return InvoiceDetail.build(record, invoice_variances(record, service.tolerance))


@router.post("/invoices/{invoice_id}/approve", response_model=InvoiceDetail)
async def approve_invoice(
    invoice_id: str,
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    """Approve and reconcile. A manual override: the variance is not re-checked."""
    return await _review(service, x_tenant_id, invoice_id, ReviewAction.APPROVE)


@router.post("/invoices/{invoice_id}/reject", response_model=InvoiceDetail)
async def reject_invoice(
    invoice_id: str,
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    """Flag for manual review."""
    return await _review(service, x_tenant_id, invoice_id, ReviewAction.REJECT)
