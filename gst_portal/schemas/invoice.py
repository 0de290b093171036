from pydantic import BaseModel, Field, AliasChoices, PlainSerializer, field_validator, ValidationInfo
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from enum import Enum
from typing import Annotated, Any, List, Optional
import logging
import re

logger = logging.getLogger(__name__)

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$")

# Decimal internally, plain JSON numbers on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

ZERO = Decimal("0")
CENT = Decimal("0.01")


class InvoiceStatus(str, Enum):
    PENDING = "Pending"
    RECONCILED = "Reconciled"
    MISMATCH = "Mismatch"
    FILED = "Filed"


def is_valid_gstin(value: str) -> bool:
    return bool(GSTIN_PATTERN.match(value or ""))


def coerce_amount(value: Any, field_name: str = "amount") -> Decimal:
    """Best-effort conversion of an extracted number. Never raises: bad input becomes 0."""
    if isinstance(value, Decimal):
        amount = value
    elif value is None or isinstance(value, bool):
        amount = None
    else:
        try:
            amount = Decimal(str(value).strip().replace(",", ""))
        except (InvalidOperation, ValueError):
            amount = None

    if amount is None or not amount.is_finite() or amount < 0:
        if value not in (None, ""):
            logger.warning(f"Defaulting {field_name}={value!r} to 0")
        return ZERO
    return amount


def quantize_cents(value: Decimal, rounding=ROUND_HALF_UP) -> Decimal:
    """Round to paise. Precision grows with the magnitude so large amounts never overflow the context."""
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT, rounding=rounding)


def coerce_text(value: Any, default: str = "N/A") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            pass
    if value not in (None, ""):
        logger.warning(f"Unparseable invoice date {value!r}, using today")
    return date.today()


class LineItem(BaseModel):
    description: str = "N/A"
    quantity: Money = ZERO
    unit_price: Money = Field(ZERO, validation_alias=AliasChoices("unitPrice", "unit_price"))

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v):
        return coerce_text(v)

    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def default_numbers(cls, v, info: ValidationInfo):
        return coerce_amount(v, info.field_name)

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


class GovtData(BaseModel):
    taxable_value: Money = ZERO
    igst: Money = ZERO


class ExtractedInvoice(BaseModel):
    """Fields read off an uploaded document. Missing or malformed values fall back to defaults."""

    invoice_number: str = Field("N/A", validation_alias=AliasChoices("invoiceNumber", "invoice_number"))
    invoice_date: date = Field(default_factory=date.today, validation_alias=AliasChoices("invoiceDate", "invoice_date"))
    supplier_name: str = Field("Unknown Supplier", validation_alias=AliasChoices("supplierName", "supplier_name"))
    supplier_gstin: str = Field("N/A", validation_alias=AliasChoices("supplierGSTIN", "supplier_gstin"))
    taxable_value: Money = Field(ZERO, validation_alias=AliasChoices("taxableValue", "taxable_value"))
    igst: Money = ZERO
    line_items: List[LineItem] = Field(default_factory=list, validation_alias=AliasChoices("lineItems", "line_items"))

    @field_validator("invoice_number", "supplier_gstin", mode="before")
    @classmethod
    def default_identifiers(cls, v):
        return coerce_text(v)

    @field_validator("supplier_name", mode="before")
    @classmethod
    def default_supplier(cls, v):
        return coerce_text(v, "Unknown Supplier")

    @field_validator("invoice_date", mode="before")
    @classmethod
    def default_date(cls, v):
        return coerce_date(v)

    @field_validator("taxable_value", "igst", mode="before")
    @classmethod
    def default_amounts(cls, v, info: ValidationInfo):
        return coerce_amount(v, info.field_name)

    @field_validator("line_items", mode="before")
    @classmethod
    def default_line_items(cls, v):
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, LineItem))]


class InvoiceRecord(ExtractedInvoice):
    id: str
    file_name: Optional[str] = None
    govt_data: GovtData
    status: InvoiceStatus
    upload_time: datetime
    reconciliation_time: Optional[datetime] = None
    filing_date: Optional[datetime] = None

    @property
    def gstin_valid(self) -> bool:
        return is_valid_gstin(self.supplier_gstin)
