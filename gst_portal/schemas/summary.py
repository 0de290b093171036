from pydantic import BaseModel
from typing import List

from gst_portal.schemas.invoice import Money, ZERO


class DashboardSummary(BaseModel):
    total_invoices: int = 0
    total_value: Money = ZERO
    total_itc: Money = ZERO
    pending: int = 0
    reconciled: int = 0
    mismatch: int = 0
    # Filed invoices count towards the totals above but not the review counts
    filed: int = 0


class FilingSummary(BaseModel):
    total_taxable: Money = ZERO
    eligible_itc: Money = ZERO
    pending: int = 0
    mismatch: int = 0
    can_file: bool = True


class FilingResult(BaseModel):
    filed_count: int
    filed_ids: List[str]


class DashboardView(DashboardSummary):
    total_value_display: str
    total_itc_display: str


class FilingView(FilingSummary):
    total_taxable_display: str
    eligible_itc_display: str
    message: str
