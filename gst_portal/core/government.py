from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional, Sequence
import random

from gst_portal.schemas.invoice import ExtractedInvoice, GovtData, quantize_cents

# Demo perturbations: the government side reports 5% less or 3% more
SYNTHETIC_DIFFERENCES = (Decimal("-0.05"), Decimal("0.03"))


class GovernmentDataSource(ABC):
    """Supplies the GSTR-2B side of the comparison for a freshly extracted invoice."""

    @abstractmethod
    async def fetch(self, invoice: ExtractedInvoice) -> GovtData:
        pass


class SyntheticGovernmentDataSource(GovernmentDataSource):
    def __init__(self, rng: Optional[random.Random] = None, differences: Sequence[Decimal] = SYNTHETIC_DIFFERENCES):
        self._rng = rng or random.Random()
        self._differences = tuple(differences)

    async def fetch(self, invoice: ExtractedInvoice) -> GovtData:
        factor = 1 + self._rng.choice(self._differences)
        return GovtData(
            taxable_value=quantize_cents(invoice.taxable_value * factor),
            igst=quantize_cents(invoice.igst * factor),
        )
