from unittest.mock import patch

from cwv_auditor.platform.exceptions import ExportError

RECORDS = [
    {
        "url": "https://example.com/",
        "category": "main",
        "status": "success",
        "metrics": {"lcp": 2140, "inp": 180, "cls": 0.07, "performanceScore": 93, "insights": []},
    },
    {"url": "https://example.com/broken", "category": "other", "status": "error"},
]


def test_export_email_sends_batch(client):
    with patch("cwv_auditor.features.reports.services.exporters.send_batch_report") as send:
        response = client.post(
            "/api/v1/reports/export-email",
            json={"email": "owner@example.com", "data": RECORDS, "batch_index": 0},
        )

    assert response.status_code == 200
    assert response.json()["message"] == "Batch 1 sent successfully"
    to_email, records, ordinal = send.call_args.args
    assert to_email == "owner@example.com"
    assert len(records) == 2
    assert ordinal == 0


def test_export_email_requires_data(client):
    response = client.post(
        "/api/v1/reports/export-email", json={"email": "owner@example.com", "data": []}
    )

    assert response.status_code == 422


def test_export_full_report(client):
    with patch("cwv_auditor.features.reports.services.exporters.send_full_report") as send:
        response = client.post(
            "/api/v1/reports/export-full-report",
            json={"email": "owner@example.com", "data": RECORDS, "domain": "example.com"},
        )

    assert response.status_code == 200
    assert response.json()["data"] == {"email": "owner@example.com", "page_count": 1}
    assert len(send.call_args.args[1]) == 1


def test_export_full_report_delivery_failure_is_500(client):
    with patch(
        "cwv_auditor.features.reports.services.exporters.send_full_report",
        side_effect=ExportError("Failed to send email: connection refused"),
    ):
        response = client.post(
            "/api/v1/reports/export-full-report",
            json={"email": "owner@example.com", "data": RECORDS, "domain": "example.com"},
        )

    assert response.status_code == 500
    assert response.json()["message"].startswith("Failed to generate report")
