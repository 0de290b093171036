from fastapi import APIRouter, Depends, HTTPException, Header
from fastapi.responses import StreamingResponse
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
import io
import logging
import uuid
from xml.sax.saxutils import escape

from gst_portal.api.deps import get_service
from gst_portal.core.aggregation import ITC_ELIGIBLE, dashboard_summary, filing_summary, format_inr
from gst_portal.core.reconciliation import ReconciliationService
from gst_portal.core.variance import calculate_variance
from gst_portal.schemas.report import FilingReport, ReportAudit, ReportInvoiceLine

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_REPORT_LINES = 100


async def build_filing_report(service: ReconciliationService, tenant_id: str) -> FilingReport:
    """Shared by the JSON and PDF endpoints."""
    records = await service.repository.snapshot(tenant_id)
    if not records:
        raise HTTPException(status_code=404, detail="No invoices found for this session.")

    lines = [
        ReportInvoiceLine(
            invoice_number=r.invoice_number,
            supplier_name=r.supplier_name,
            supplier_gstin=r.supplier_gstin,
            status=r.status,
            taxable_value=r.taxable_value,
            itc_amount=r.igst,
            taxable_variance=calculate_variance(r.taxable_value, r.govt_data.taxable_value, service.tolerance).display,
            itc_eligible=ITC_ELIGIBLE[r.status],
        )
        for r in records[:MAX_REPORT_LINES]
    ]

    return FilingReport(
        tenant_id=tenant_id,
        dashboard=dashboard_summary(records),
        filing=filing_summary(records),
        invoices=lines,
        audit=ReportAudit(report_id=str(uuid.uuid4())),
    )


@router.get("/reports/gstr-3b", response_model=FilingReport)
async def get_filing_report(
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    logger.info(f"JSON filing report requested for tenant: {x_tenant_id}")
    return await build_filing_report(service, x_tenant_id)


@router.get("/reports/gstr-3b/pdf")
async def get_filing_report_pdf(
    x_tenant_id: str = Header(..., alias="X-Tenant-ID"),
    service: ReconciliationService = Depends(get_service),
):
    logger.info(f"PDF filing report generation STARTED for tenant: {x_tenant_id}")
    report = await build_filing_report(service, x_tenant_id)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    styles = getSampleStyleSheet()
    elements = []

    # Header
    elements.append(Paragraph("GSTR-3B Filing Summary", styles['Title']))
    elements.append(Spacer(1, 12))
    elements.append(Paragraph(f"<b>Tenant ID:</b> {escape(report.tenant_id)}", styles['Normal']))
    elements.append(Paragraph(f"<b>Generated:</b> {report.audit.generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC", styles['Normal']))
    elements.append(Paragraph(f"<b>Report ID:</b> {report.audit.report_id}", styles['Normal']))
    elements.append(Spacer(1, 24))

    # Reportlab's base fonts lack the rupee sign
    def rs(amount) -> str:
        return format_inr(amount).replace("₹", "Rs.")

    elements.append(Paragraph("Filing Summary", styles['Heading2']))
    summary_data = [
        ["Metric", "Value"],
        ["Total Invoices", str(report.dashboard.total_invoices)],
        ["Pending", str(report.dashboard.pending)],
        ["Reconciled", str(report.dashboard.reconciled)],
        ["Mismatch", str(report.dashboard.mismatch)],
        ["Filed", str(report.dashboard.filed)],
        ["Taxable Value (unfiled)", rs(report.filing.total_taxable)],
        ["Eligible ITC (IGST)", rs(report.filing.eligible_itc)],
        ["Ready to File", "Yes" if report.filing.can_file else "No"],
    ]
    summary_table = Table(summary_data, colWidths=[200, 150])
    summary_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.navy),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey)
    ]))
    elements.append(summary_table)
    elements.append(Spacer(1, 24))

    elements.append(Paragraph("Invoices", styles['Heading2']))
    invoice_data = [["Invoice", "Supplier GSTIN", "Status", "Taxable", "IGST", "Variance"]]
    for line in report.invoices:
        invoice_data.append([
            line.invoice_number,
            line.supplier_gstin,
            line.status.value,
            rs(line.taxable_value),
            rs(line.itc_amount),
            line.taxable_variance,
        ])
    invoice_table = Table(invoice_data, repeatRows=1)
    invoice_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.navy),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey)
    ]))
    elements.append(invoice_table)

    elements.append(Spacer(1, 48))
    footer_text = "Only reconciled documents are included in the eligible ITC claimable amount. Government figures are simulated."
    elements.append(Paragraph(footer_text, ParagraphStyle(name='Footer', fontSize=8, textColor=colors.grey, alignment=1)))

    try:
        doc.build(elements)
    except Exception as e:
        logger.error(f"PDF Build Failed: {str(e)}")
        raise HTTPException(status_code=500, detail="PDF generation failed during document build.")

    pdf_bytes = buffer.getvalue()
    buffer.seek(0)
    return StreamingResponse(
        buffer,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename=GSTR3B_Summary_{x_tenant_id[:8]}.pdf",
            "Content-Length": str(len(pdf_bytes))
        }
    )
