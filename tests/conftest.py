from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
import json

import httpx
import pytest

from gst_portal.core.config import Settings
from gst_portal.schemas.invoice import GovtData, InvoiceRecord, InvoiceStatus

BASE_TIME = datetime(2024, 4, 1, 9, 0, tzinfo=timezone.utc)

SAMPLE_PAYLOAD = {
    "invoiceNumber": "INV-2024-001",
    "invoiceDate": "2024-03-28",
    "supplierName": "Shree Ganesh Traders",
    "supplierGSTIN": "27AAAAA0000A1Z5",
    "taxableValue": 1000,
    "igst": 180,
    "lineItems": [
        {"description": "Steel rods", "quantity": 10, "unitPrice": 75},
        {"description": "Binding wire", "quantity": 5, "unitPrice": 50},
    ],
}


class FakeCompletions:
    """Plays back queued replies: a string is returned as message content, an exception is raised."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=outcome))])


class FakeChatClient:
    def __init__(self, outcomes):
        self.completions = FakeCompletions(outcomes)
        self.chat = SimpleNamespace(completions=self.completions)


def api_error(error_cls, status_code: int):
    request = httpx.Request("POST", "https://extraction.test/chat/completions")
    response = httpx.Response(status_code, request=request)
    return error_cls(f"Error code: {status_code}", response=response, body=None)


def connection_error(error_cls):
    return error_cls(request=httpx.Request("POST", "https://extraction.test/chat/completions"))


def make_record(
    invoice_id: str,
    status: InvoiceStatus = InvoiceStatus.PENDING,
    taxable_value="1000",
    igst="180",
    govt_taxable=None,
    govt_igst=None,
    minutes: int = 0,
) -> InvoiceRecord:
    return InvoiceRecord(
        id=invoice_id,
        invoice_number=f"INV-{invoice_id}",
        invoice_date=date(2024, 3, 28),
        supplier_name="Shree Ganesh Traders",
        supplier_gstin="27AAAAA0000A1Z5",
        taxable_value=Decimal(str(taxable_value)),
        igst=Decimal(str(igst)),
        govt_data=GovtData(
            taxable_value=Decimal(str(govt_taxable if govt_taxable is not None else taxable_value)),
            igst=Decimal(str(govt_igst if govt_igst is not None else igst)),
        ),
        status=status,
        upload_time=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture
def settings():
    return Settings(
        EXTRACTION_API_KEY="test-key",
        EXTRACTION_BACKOFF_SECONDS=0.0,
        EXTRACTION_JITTER_SECONDS=0.0,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def sample_reply():
    return json.dumps(SAMPLE_PAYLOAD)
