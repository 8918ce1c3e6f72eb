"""
Job sheet extraction tests. The model API is replaced by httpx.MockTransport.
"""

import base64
import json

import httpx
import pytest

from bikeshop.models import Job
from bikeshop.services import jobsheet_service
from bikeshop.services.jobsheet_service import (
    JobSheetConfigError,
    JobSheetError,
    decode_job_sheet,
    extract_json_object,
)


IMAGE = base64.b64encode(b"\xff\xd8\xff\xe0 not really a jpeg").decode("ascii")

SHEET = {
    "customerName": "Casey Customer",
    "customerPhone": "0412 345 678",
    "bikeModel": "Giant Escape 3",
    "dateIn": "2026-10-15",
    "workRequired": "Full service",
    "workDone": ["Chain $45", "Brake pads $30"],
    "laborCost": 60,
    "totalCost": "$135.50",
}


def _answer(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _transport(status_code=200, body=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=body if body is not None else {})
    return httpx.MockTransport(handler)


@pytest.fixture
def mock_model(monkeypatch):
    """Route every httpx.Client the service opens through a MockTransport."""
    real_client = httpx.Client

    def install(transport):
        def factory(*args, **kwargs):
            kwargs["transport"] = transport
            return real_client(*args, **kwargs)
        monkeypatch.setattr(httpx, "Client", factory)

    return install


class TestParsing:
    def test_json_inside_code_fence(self):
        text = "Here you go:\n```json\n" + json.dumps(SHEET) + "\n```"
        assert extract_json_object(text)["customerName"] == "Casey Customer"

    def test_no_json(self):
        with pytest.raises(JobSheetError, match="No JSON found"):
            extract_json_object("I could not read that photo.")

    def test_malformed_json(self):
        with pytest.raises(JobSheetError, match="Malformed JSON"):
            extract_json_object("{customerName: Casey}")

    def test_missing_required_keys(self):
        with pytest.raises(JobSheetError, match="Missing required fields"):
            decode_job_sheet({"customerName": "Casey"})

    def test_costs_in_cents(self):
        sheet = decode_job_sheet(SHEET)
        assert sheet.labor_cost_cents == 6000
        assert sheet.total_cost_cents == 13550
        assert sheet.work_done == "Chain $45\nBrake pads $30"

    def test_negative_cost_rejected(self):
        with pytest.raises(JobSheetError):
            decode_job_sheet({**SHEET, "laborCost": -5})

    def test_job_patch_defaults(self):
        sheet = decode_job_sheet({"customerName": "Casey", "customerPhone": "0400", "dateIn": "last Tuesday",
                                  "laborCost": 50, "totalCost": 20})
        patch = sheet.to_job_patch()
        assert patch["bike_model"] == "Unknown"
        assert patch["work_required"] == "See job sheet"
        assert patch["date_in"] is None
        assert patch["total_cost_cents"] == patch["labor_cost_cents"] == 5000


class TestExtraction:
    def test_success(self, app, db_session):
        seen = []
        client = httpx.Client(transport=_transport(body=_answer(json.dumps(SHEET)), seen=seen))
        sheet = jobsheet_service.extract_job_sheet("data:image/jpeg;base64," + IMAGE, client=client)

        assert sheet.customer_name == "Casey Customer"
        assert sheet.bike_model == "Giant Escape 3"
        request = seen[0]
        assert request.headers["x-goog-api-key"] == "test-key"
        body = json.loads(request.content)
        assert body["contents"][0]["parts"][1]["inlineData"] == {"mimeType": "image/jpeg", "data": IMAGE}
        assert body["generationConfig"]["maxOutputTokens"] == 8192

    def test_http_error_status(self, app, db_session):
        client = httpx.Client(transport=_transport(status_code=500, body={"error": "boom"}))
        with pytest.raises(JobSheetError, match="API error: 500"):
            jobsheet_service.extract_job_sheet(IMAGE, client=client)

    def test_empty_answer(self, app, db_session):
        client = httpx.Client(transport=_transport(body={"candidates": []}))
        with pytest.raises(JobSheetError, match="No text found"):
            jobsheet_service.extract_job_sheet(IMAGE, client=client)

    def test_not_base64(self, app, db_session):
        with pytest.raises(JobSheetError):
            jobsheet_service.extract_job_sheet("not base64 at all!")

    def test_missing_api_key(self, app, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "GEMINI_API_KEY", None)
        with pytest.raises(JobSheetConfigError):
            jobsheet_service.extract_job_sheet(IMAGE)


class TestScanEndpoint:
    def test_scan_only_extracts(self, client, db_session, staff_headers, mock_model):
        mock_model(_transport(body=_answer(json.dumps(SHEET))))
        resp = client.post("/api/jobs/scan", json={"image": IMAGE}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["extracted"]["customer_phone"] == "0412 345 678"
        assert db_session.query(Job).count() == 0

    def test_scan_and_save(self, client, db_session, staff_user, staff_headers, mock_model):
        mock_model(_transport(body=_answer(json.dumps(SHEET))))
        resp = client.post("/api/jobs/scan?save=1", json={"image": IMAGE}, headers=staff_headers)
        assert resp.status_code == 201
        job = resp.get_json()["job"]
        assert job["source"] == "scan"
        assert job["user_id"] == staff_user.id
        assert job["total_cost_cents"] == 13550
        assert job["date_in"] == "2026-10-15"

    def test_scan_failure_is_retryable(self, client, staff_headers, mock_model):
        mock_model(_transport(body=_answer("Sorry, the photo is blurry.")))
        resp = client.post("/api/jobs/scan", json={"image": IMAGE}, headers=staff_headers)
        assert resp.status_code == 502
        assert resp.get_json()["retryable"] is True

    def test_scan_not_configured(self, app, client, staff_headers, monkeypatch):
        monkeypatch.setitem(app.config, "GEMINI_API_KEY", "")
        resp = client.post("/api/jobs/scan", json={"image": IMAGE}, headers=staff_headers)
        assert resp.status_code == 503
