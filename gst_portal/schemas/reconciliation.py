from pydantic import BaseModel
from datetime import date, datetime
from typing import List, Optional

from gst_portal.core.variance import InvoiceVariances, Variance
from gst_portal.schemas.invoice import GovtData, InvoiceRecord, InvoiceStatus, Money, ZERO


class VarianceView(BaseModel):
    percentage: Optional[Money] = None
    display: str
    is_mismatch: bool
    absolute_diff: Money

    @classmethod
    def of(cls, variance: Variance) -> "VarianceView":
        return cls(
            percentage=variance.percentage,
            display=variance.display,
            is_mismatch=variance.is_mismatch,
            absolute_diff=variance.absolute_diff,
        )


class InvoiceRow(BaseModel):
    id: str
    invoice_number: str
    invoice_date: date
    supplier_name: str
    supplier_gstin: str
    gstin_valid: bool
    status: InvoiceStatus
    taxable_value: Money
    igst: Money
    govt_data: GovtData
    taxable_variance: VarianceView
    itc_variance: VarianceView
    needs_review: bool
    upload_time: datetime

    @classmethod
    def build(cls, record: InvoiceRecord, variances: InvoiceVariances) -> "InvoiceRow":
        return cls(
            id=record.id,
            invoice_number=record.invoice_number,
            invoice_date=record.invoice_date,
            supplier_name=record.supplier_name,
            supplier_gstin=record.supplier_gstin,
            gstin_valid=record.gstin_valid,
            status=record.status,
            taxable_value=record.taxable_value,
            igst=record.igst,
            govt_data=record.govt_data,
            taxable_variance=VarianceView.of(variances.taxable),
            itc_variance=VarianceView.of(variances.itc),
            needs_review=record.status in (InvoiceStatus.PENDING, InvoiceStatus.MISMATCH),
            upload_time=record.upload_time,
        )


class LineItemView(BaseModel):
    description: str
    quantity: Money
    unit_price: Money
    line_total: Money


class InvoiceDetail(InvoiceRow):
    file_name: Optional[str] = None
    line_items: List[LineItemView] = []
    line_items_total: Money
    reconciliation_time: Optional[datetime] = None
    filing_date: Optional[datetime] = None

    @classmethod
    def build(cls, record: InvoiceRecord, variances: InvoiceVariances) -> "InvoiceDetail":
        row = InvoiceRow.build(record, variances)
        items = [
            LineItemView(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in record.line_items
        ]
        return cls(
            **dict(row),
            file_name=record.file_name,
            line_items=items,
            line_items_total=sum((item.line_total for item in record.line_items), ZERO),
            reconciliation_time=record.reconciliation_time,
            filing_date=record.filing_date,
        )
