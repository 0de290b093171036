from datetime import date
from decimal import Decimal
import asyncio
import json

import pytest
from openai import APIConnectionError, APIStatusError, APITimeoutError, RateLimitError
from tenacity import RetryCallState

from gst_portal.core.config import Settings
from gst_portal.core.errors import ExtractionFailure
from gst_portal.core.extraction import ExtractionClient, document_part, parse_payload
from conftest import SAMPLE_PAYLOAD, FakeChatClient, api_error, connection_error

PNG = b"\x89PNG\r\n\x1a\nfake-image"


def run_extract(settings, outcomes, content=PNG, media_type="image/png"):
    fake = FakeChatClient(outcomes)
    extractor = ExtractionClient(settings, client=fake)

    async def scenario():
        return await extractor.extract(content, media_type, "invoice.png")

    return fake, scenario


def test_extracts_fields(settings, sample_reply):
    fake, scenario = run_extract(settings, [sample_reply])
    invoice = asyncio.run(scenario())

    assert invoice.invoice_number == "INV-2024-001"
    assert invoice.invoice_date == date(2024, 3, 28)
    assert invoice.supplier_gstin == "27AAAAA0000A1Z5"
    assert invoice.taxable_value == Decimal("1000")
    assert invoice.igst == Decimal("180")
    assert [item.line_total for item in invoice.line_items] == [Decimal("750"), Decimal("250")]

    request = fake.completions.calls[0]
    assert request["model"] == settings.EXTRACTION_MODEL
    assert request["response_format"] == {"type": "json_object"}
    image_part = request["messages"][1]["content"][1]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


def test_missing_fields_fall_back_to_defaults():
    invoice = parse_payload(json.dumps({
        "taxableValue": "not a number",
        "igst": None,
        "invoiceDate": "28/03/2024",
        "lineItems": "nope",
    }))
    assert invoice.invoice_number == "N/A"
    assert invoice.supplier_name == "Unknown Supplier"
    assert invoice.supplier_gstin == "N/A"
    assert invoice.taxable_value == Decimal("0")
    assert invoice.igst == Decimal("0")
    assert invoice.invoice_date == date.today()
    assert invoice.line_items == []


def test_line_item_defaults():
    invoice = parse_payload(json.dumps({
        "lineItems": [{"quantity": "2", "unitPrice": "1,250.50"}, "garbage", {"description": "Bolts", "quantity": -3}]
    }))
    first, second = invoice.line_items
    assert first.description == "N/A"
    assert first.line_total == Decimal("2501.00")
    assert second.quantity == Decimal("0")
    assert second.unit_price == Decimal("0")


def test_json_embedded_in_prose():
    text = "Here is the data:\n```json\n" + json.dumps(SAMPLE_PAYLOAD) + "\n```"
    assert parse_payload(text).invoice_number == "INV-2024-001"


@pytest.mark.parametrize("text", [None, "", "no structured data here", "[1, 2, 3]", "{broken json"])
def test_payload_without_json_object_fails(text):
    with pytest.raises(ExtractionFailure):
        parse_payload(text)


def test_rate_limit_is_retried(settings, sample_reply):
    fake, scenario = run_extract(settings, [api_error(RateLimitError, 429), sample_reply])
    assert asyncio.run(scenario()).invoice_number == "INV-2024-001"
    assert len(fake.completions.calls) == 2


def test_transient_network_errors_are_retried(settings, sample_reply):
    outcomes = [connection_error(APIConnectionError), connection_error(APITimeoutError), sample_reply]
    fake, scenario = run_extract(settings, outcomes)
    asyncio.run(scenario())
    assert len(fake.completions.calls) == 3


def test_gives_up_after_three_attempts(settings, sample_reply):
    outcomes = [api_error(RateLimitError, 429)] * 3 + [sample_reply]
    fake, scenario = run_extract(settings, outcomes)
    with pytest.raises(ExtractionFailure, match="after 3 attempts"):
        asyncio.run(scenario())
    assert len(fake.completions.calls) == 3


def test_other_status_errors_are_terminal(settings, sample_reply):
    fake, scenario = run_extract(settings, [api_error(APIStatusError, 500), sample_reply])
    with pytest.raises(ExtractionFailure, match="status: 500"):
        asyncio.run(scenario())
    assert len(fake.completions.calls) == 1


def test_malformed_reply_is_not_retried(settings, sample_reply):
    fake, scenario = run_extract(settings, ["I could not read this document.", sample_reply])
    with pytest.raises(ExtractionFailure):
        asyncio.run(scenario())
    assert len(fake.completions.calls) == 1


def test_unsupported_media_type_never_calls_the_service(settings, sample_reply):
    fake, scenario = run_extract(settings, [sample_reply], content=b"a,b,c", media_type="text/csv")
    with pytest.raises(ExtractionFailure, match="Unsupported document type"):
        asyncio.run(scenario())
    assert fake.completions.calls == []


def test_missing_api_key_fails_fast():
    extractor = ExtractionClient(Settings(EXTRACTION_API_KEY=""))
    with pytest.raises(ExtractionFailure, match="EXTRACTION_API_KEY"):
        asyncio.run(extractor.extract(PNG, "image/png"))


def test_pdf_is_sent_as_file_part():
    part = document_part(b"%PDF-1.7", "application/pdf", "bill.pdf")
    assert part["type"] == "file"
    assert part["file"]["filename"] == "bill.pdf"
    assert part["file"]["file_data"].startswith("data:application/pdf;base64,")


def test_backoff_schedule():
    extractor = ExtractionClient(Settings(EXTRACTION_BACKOFF_SECONDS=1.0, EXTRACTION_JITTER_SECONDS=1.0))
    wait = extractor._wait()
    state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
    for attempt_number, base in [(1, 2.0), (2, 4.0)]:
        state.attempt_number = attempt_number
        delay = wait(state)
        assert base <= delay <= base + 1.0
