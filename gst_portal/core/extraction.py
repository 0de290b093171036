"""
Invoice field extraction through an OpenAI-compatible chat completions API.

One request per attempt, at most EXTRACTION_MAX_ATTEMPTS attempts. Rate limits,
connection errors and timeouts are retried with exponential backoff plus
jitter; every other API error, and a reply without a JSON object, fails at once.
"""
from openai import AsyncOpenAI, APIConnectionError, APIStatusError, OpenAIError, RateLimitError
from pydantic import ValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential, wait_random
from typing import Any, Dict, Optional
import base64
import json
import logging
import re

from gst_portal.core.config import Settings
from gst_portal.core.errors import ExtractionFailure
from gst_portal.schemas.invoice import ExtractedInvoice

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (RateLimitError, APIConnectionError)

SYSTEM_PROMPT = (
    "You are a specialized GST document parser. Extract the identifying, financial and "
    "line-item details from the provided invoice or purchase order for Indian GST compliance. "
    "Return ONLY a JSON object with these keys: invoiceNumber (string), invoiceDate (YYYY-MM-DD), "
    "supplierName (string), supplierGSTIN (15 characters), taxableValue (number), igst (number), "
    "lineItems (array of objects with description, quantity, unitPrice). "
    "taxableValue, igst, quantity and unitPrice must be numbers. "
    "If a field is not present, return 0 for numbers and 'N/A' for strings."
)

USER_PROMPT = (
    "Extract the invoice details required for GST filing: invoice number, date (in YYYY-MM-DD format), "
    "supplier name, supplier GSTIN (15 characters), the total Taxable Value (net amount before GST), "
    "the total IGST (Integrated Goods and Services Tax) amount, and an array of line items. "
    "Each line item must include its description, quantity, and unit price."
)

JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def is_supported_media_type(media_type: Optional[str]) -> bool:
    return bool(media_type) and (media_type.startswith("image/") or media_type == "application/pdf")


def document_part(content: bytes, media_type: str, file_name: Optional[str] = None) -> Dict[str, Any]:
    if not is_supported_media_type(media_type):
        raise ExtractionFailure(f"Unsupported document type '{media_type}'. Upload an image or a PDF.")

    data_url = f"data:{media_type};base64,{base64.b64encode(content).decode('ascii')}"
    if media_type == "application/pdf":
        return {"type": "file", "file": {"filename": file_name or "invoice.pdf", "file_data": data_url}}
    return {"type": "image_url", "image_url": {"url": data_url}}


def parse_payload(text: Optional[str]) -> ExtractedInvoice:
    """Pull the JSON object out of a model reply, tolerating code fences or surrounding prose."""
    if not text or not text.strip():
        raise ExtractionFailure("Extraction service returned no content or structured JSON.")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = JSON_OBJECT.search(text)
        if not match:
            raise ExtractionFailure("Extraction service reply contained no JSON object.")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ExtractionFailure(f"Extraction service returned malformed JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionFailure("Extraction service reply was not a JSON object.")

    try:
        return ExtractedInvoice.model_validate(data)
    except ValidationError as e:
        raise ExtractionFailure(f"Extracted fields could not be read: {e}") from e


class ExtractionClient:
    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.EXTRACTION_API_KEY:
                raise ExtractionFailure("Extraction API key is not configured (EXTRACTION_API_KEY).")
            # Retries are handled here, not by the SDK
            self._client = AsyncOpenAI(
                api_key=self.settings.EXTRACTION_API_KEY,
                base_url=self.settings.EXTRACTION_BASE_URL,
                timeout=self.settings.EXTRACTION_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    def _wait(self):
        # Before zero-indexed attempt k: 2^k * backoff + uniform(0, jitter)
        return wait_exponential(multiplier=2 * self.settings.EXTRACTION_BACKOFF_SECONDS, exp_base=2) + wait_random(
            0, self.settings.EXTRACTION_JITTER_SECONDS
        )

    @staticmethod
    def _log_retry(retry_state: RetryCallState):
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(f"Extraction attempt {retry_state.attempt_number} failed ({error}); retrying in {delay:.1f}s")

    async def extract(self, content: bytes, media_type: str, file_name: Optional[str] = None) -> ExtractedInvoice:
        if not content:
            raise ExtractionFailure("Uploaded document is empty.")

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": [{"type": "text", "text": USER_PROMPT}, document_part(content, media_type, file_name)]},
        ]
        client = self.client
        attempts = self.settings.EXTRACTION_MAX_ATTEMPTS

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                wait=self._wait(),
                stop=stop_after_attempt(attempts),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    response = await client.chat.completions.create(
                        model=self.settings.EXTRACTION_MODEL,
                        messages=messages,
                        temperature=0.0,
                        response_format={"type": "json_object"},
                    )
        except TRANSIENT_ERRORS as e:
            logger.error(f"Failed to extract data after {attempts} attempts: {e}")
            raise ExtractionFailure(f"Failed to extract data after {attempts} attempts: {e}") from e
        except APIStatusError as e:
            logger.error(f"Extraction request rejected with status {e.status_code}: {e}")
            raise ExtractionFailure(f"API request failed with status: {e.status_code}") from e
        except OpenAIError as e:
            logger.error(f"Extraction request failed: {e}")
            raise ExtractionFailure(f"Failed to extract data: {e}") from e

        if not response.choices:
            raise ExtractionFailure("Extraction service returned no content or structured JSON.")
        invoice = parse_payload(response.choices[0].message.content)
        logger.info(f"Extracted invoice {invoice.invoice_number} from {file_name or media_type}")
        return invoice
