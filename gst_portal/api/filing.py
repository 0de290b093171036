from fastapi import APIRouter, Depends, HTTPException, Header
from fastapi.responses import JSONResponse
import logging

from gst_portal.api.deps import get_service
from gst_portal.core.aggregation import dashboard_summary, filing_summary, format_inr
from gst_portal.core.errors import FilingBlocked, PartialFilingFailure
from gst_portal.core.reconciliation import ReconciliationService
from gst_portal.schemas.summary import DashboardView, FilingResult, FilingSummary, FilingView

router = APIRouter()
logger = logging.getLogger(__name__)


def filing_message(summary: FilingSummary) -> str:
    if summary.can_file:
        return "All documents are reconciled. Ready to file GSTR-3B."
    return (
        f"Please resolve all {summary.pending} Pending and {summary.mismatch} Mismatch "
        "documents before proceeding with GSTR-3B."
    )


@router.get("/dashboard", response_model=DashboardView)
async def get_dashboard(
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    summary = dashboard_summary(await service.repository.snapshot(x_tenant_id))
    return DashboardView(
        **summary.model_dump(),
        total_value_display=format_inr(summary.total_value),
        total_itc_display=format_inr(summary.total_itc),
    )


@router.get("/filing", response_model=FilingView)
async def get_filing_status(
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    summary = filing_summary(await service.repository.snapshot(x_tenant_id))
    return FilingView(
        **summary.model_dump(),
        total_taxable_display=format_inr(summary.total_taxable),
        eligible_itc_display=format_inr(summary.eligible_itc),
        message=filing_message(summary),
    )


@router.post("/filing/gstr-3b", response_model=FilingResult)
async def file_gstr3b(
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    try:
        filed_ids = await service.file_gstr3b(x_tenant_id)
    except FilingBlocked as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PartialFilingFailure as e:
        logger.error(f"Filing failed for tenant {x_tenant_id}: {e}")
        return JSONResponse(
            status_code=500,
            content={"detail": str(e), "filed_ids": e.filed_ids, "failed_ids": e.failed_ids},
        )

    return FilingResult(filed_count=len(filed_ids), filed_ids=filed_ids)
