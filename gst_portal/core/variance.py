from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from gst_portal.schemas.invoice import InvoiceRecord, quantize_cents

Number = Union[Decimal, int, float, str]

DEFAULT_TOLERANCE_PERCENT = Decimal("1.0")


@dataclass(frozen=True)
class Variance:
    percentage: Optional[Decimal]
    is_mismatch: bool
    absolute_diff: Decimal

    @property
    def display(self) -> str:
        if self.percentage is None:
            return "0.00%" if not self.is_mismatch else "N/A"
        return f"{quantize_cents(self.percentage)}%"


def _as_decimal(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def calculate_variance(ours: Number, theirs: Number, tolerance: Number = DEFAULT_TOLERANCE_PERCENT) -> Variance:
    """
    Relative difference of our figure against the comparison figure, in percent.
    A zero comparison figure has no percentage: it is a mismatch unless ours is zero too.
    """
    ours = _as_decimal(ours)
    theirs = _as_decimal(theirs)
    diff = ours - theirs

    if theirs == 0:
        return Variance(percentage=None, is_mismatch=ours != 0, absolute_diff=diff)

    percentage = diff / theirs * 100
    return Variance(
        percentage=percentage,
        is_mismatch=abs(percentage) > _as_decimal(tolerance),
        absolute_diff=diff,
    )


@dataclass(frozen=True)
class InvoiceVariances:
    taxable: Variance
    itc: Variance

    @property
    def any_mismatch(self) -> bool:
        return self.taxable.is_mismatch or self.itc.is_mismatch


def invoice_variances(record: InvoiceRecord, tolerance: Number = DEFAULT_TOLERANCE_PERCENT) -> InvoiceVariances:
    return InvoiceVariances(
        taxable=calculate_variance(record.taxable_value, record.govt_data.taxable_value, tolerance),
        itc=calculate_variance(record.igst, record.govt_data.igst, tolerance),
    )
