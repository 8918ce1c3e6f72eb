# Overview: Extract job details from a photographed job sheet via the Gemini API.

"""
Job Sheet Extraction

A single generateContent call carries the extraction prompt and the JPEG as
inline base64 data. The model answers with free text that should contain one
JSON object; the object is located by brace matching, parsed, checked for
the required keys and decoded into JobSheetData.

Nothing here is retried: a failure is reported to the caller, who may try
again with a clearer photo.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation

import httpx
from flask import current_app

from bikeshop.time_utils import parse_iso_date


EXTRACTION_PROMPT = """Extract the following information from this job sheet image and return it as a JSON object:
- Customer Name
- Phone Number
- Bike Model
- Date In
- Work Required
- Work Done items with costs
- Labor Cost
- Total Cost including GST

Format as:
{
  "customerName": string,
  "customerPhone": string,
  "bikeModel": string,
  "dateIn": string,
  "workRequired": string,
  "workDone": string,
  "laborCost": number,
  "totalCost": number
}"""

GENERATION_CONFIG = {
    "temperature": 0.7,
    "topP": 0.8,
    "topK": 40,
    "maxOutputTokens": 8192,
}

REQUIRED_KEYS = ("customerName", "customerPhone")

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class JobSheetError(Exception):
    """Extraction failed; the user may retry with another photo."""
    retryable = True


class JobSheetConfigError(Exception):
    """The extraction API is not configured."""
    pass


@dataclass
class JobSheetData:
    customer_name: str
    customer_phone: str
    bike_model: str
    date_in: str | None
    work_required: str
    work_done: str
    labor_cost_cents: int
    total_cost_cents: int

    def to_dict(self) -> dict:
        return asdict(self)

    def to_job_patch(self) -> dict:
        """Fields in the shape job_service expects."""
        patch = {
            "customer_name": self.customer_name[:128],
            "customer_phone": self.customer_phone[:32],
            "bike_model": (self.bike_model or "Unknown")[:128],
            "work_required": self.work_required or "See job sheet",
            "work_done": self.work_done or None,
            "labor_cost_cents": self.labor_cost_cents,
            "total_cost_cents": max(self.total_cost_cents, self.labor_cost_cents),
        }
        try:
            patch["date_in"] = parse_iso_date(self.date_in) if self.date_in else None
        except ValueError:
            # Hand-written dates rarely parse; keep the job, drop the date
            patch["date_in"] = None
        return patch


def _to_cents(key: str, value) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise JobSheetError(f"{key} must be a number")
    if isinstance(value, str):
        value = value.replace("$", "").replace(",", "").strip()
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise JobSheetError(f"{key} must be a number")
    if amount < 0:
        raise JobSheetError(f"{key} cannot be negative")
    return int((amount * 100).quantize(Decimal("1")))


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return "\n".join(str(v).strip() for v in value if str(v).strip())
    return str(value).strip()


def decode_job_sheet(data) -> JobSheetData:
    """Validate the parsed JSON object and decode it; fails loudly on shape mismatch."""
    if not isinstance(data, dict):
        raise JobSheetError("Extracted data is not a JSON object")

    missing = [k for k in REQUIRED_KEYS if not _text(data.get(k))]
    if missing:
        raise JobSheetError("Missing required fields in response")

    return JobSheetData(
        customer_name=_text(data.get("customerName")),
        customer_phone=_text(data.get("customerPhone")),
        bike_model=_text(data.get("bikeModel")),
        date_in=_text(data.get("dateIn")) or None,
        work_required=_text(data.get("workRequired")),
        work_done=_text(data.get("workDone")),
        labor_cost_cents=_to_cents("laborCost", data.get("laborCost")),
        total_cost_cents=_to_cents("totalCost", data.get("totalCost")),
    )


def extract_json_object(text: str) -> dict:
    """Find the outermost {...} in free text and parse it."""
    match = _JSON_OBJECT_RE.search(text or "")
    if not match:
        raise JobSheetError("No JSON found in response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise JobSheetError("Malformed JSON in response") from exc


def _response_text(payload) -> str:
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None
    if not text:
        raise JobSheetError("No text found in response")
    return text


def build_request(image_base64: str) -> dict:
    return {
        "contents": [{
            "role": "user",
            "parts": [
                {"text": EXTRACTION_PROMPT},
                {"inlineData": {"mimeType": "image/jpeg", "data": image_base64}},
            ],
        }],
        "generationConfig": GENERATION_CONFIG,
    }


def _clean_image(image_base64: str) -> str:
    if not image_base64 or not isinstance(image_base64, str):
        raise JobSheetError("Failed to capture image")
    # Accept data URLs from the camera picker
    if image_base64.startswith("data:") and "," in image_base64:
        image_base64 = image_base64.split(",", 1)[1]
    image_base64 = image_base64.strip()
    try:
        base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise JobSheetError("Image is not valid base64 data")
    return image_base64


def extract_job_sheet(image_base64: str, *, client: httpx.Client | None = None) -> JobSheetData:
    """
    Send the job sheet photo to the model and decode its answer.

    Raises:
        JobSheetConfigError: no API key configured
        JobSheetError: HTTP failure, empty answer, no/malformed JSON, missing keys
    """
    config = current_app.config
    api_key = config.get("GEMINI_API_KEY")
    if not api_key:
        raise JobSheetConfigError("Job sheet scanning is not configured")

    image_base64 = _clean_image(image_base64)
    url = config["GEMINI_API_URL"].format(model=config["GEMINI_MODEL"])
    headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=config.get("JOBSHEET_TIMEOUT_SECONDS", 60))

    try:
        response = client.post(url, json=build_request(image_base64), headers=headers)
    except httpx.HTTPError as exc:
        current_app.logger.warning("Job sheet API request failed: %s", exc)
        raise JobSheetError("Could not reach the job sheet scanning service") from exc
    finally:
        if owns_client:
            client.close()

    if response.status_code >= 400:
        current_app.logger.error("Job sheet API error %s: %s", response.status_code, response.text[:500])
        raise JobSheetError(f"API error: {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise JobSheetError("API returned a non-JSON response") from exc

    data = extract_json_object(_response_text(payload))
    sheet = decode_job_sheet(data)
    current_app.logger.info("Job sheet extracted for customer %s", sheet.customer_name)
    return sheet
