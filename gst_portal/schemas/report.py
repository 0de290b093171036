from pydantic import BaseModel, Field
from typing import List
from datetime import datetime, timezone

from gst_portal.schemas.invoice import InvoiceStatus, Money
from gst_portal.schemas.summary import DashboardSummary, FilingSummary


class ReportInvoiceLine(BaseModel):
    invoice_number: str
    supplier_name: str
    supplier_gstin: str
    status: InvoiceStatus
    taxable_value: Money
    itc_amount: Money
    taxable_variance: str
    itc_eligible: bool


class ReportAudit(BaseModel):
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    report_id: str
    data_sources: List[str] = ["User_Upload", "Government_Portal_Mock"]


class FilingReport(BaseModel):
    tenant_id: str
    dashboard: DashboardSummary
    filing: FilingSummary
    invoices: List[ReportInvoiceLine] = []
    audit: ReportAudit
