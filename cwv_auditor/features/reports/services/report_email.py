"""Email delivery of batch and full audit reports."""
import re
from typing import Sequence

from cwv_auditor.features.reports.services.csv_report import build_batch_csv, build_full_csv
from cwv_auditor.features.reports.services.pdf_report import build_pdf_report
from cwv_auditor.features.scan.schemas.scan import PageRecord, PageStatus
from cwv_auditor.platform.services.email import Attachment, render_template, send_email


def _filename_safe(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "-", value).strip("-") or "site"


def send_batch_report(to_email: str, records: Sequence[PageRecord], batch_ordinal: int):
    """Mail one closed batch as CSV. Batches are numbered from 1 for humans."""
    batch_number = batch_ordinal + 1
    success_count = sum(1 for r in records if r.status == PageStatus.success)
    html_content = render_template(
        "batch_report.html",
        batch_number=batch_number,
        page_count=len(records),
        success_count=success_count,
        error_count=len(records) - success_count,
    )
    send_email(
        to_email,
        f"Core Web Vitals Audit Report - Batch {batch_number}",
        html_content,
        attachments=[
            Attachment(
                filename=f"cwv-audit-batch-{batch_number}.csv",
                content=build_batch_csv(records).encode("utf-8"),
                mime_subtype="csv",
            )
        ],
    )


def send_full_report(to_email: str, records: Sequence[PageRecord], domain: str):
    """Mail the whole audit as CSV + PDF."""
    scores = [r.metrics.performance_score for r in records if r.metrics]
    average_score = round(sum(scores) / len(scores)) if scores else None
    safe_domain = _filename_safe(domain)

    html_content = render_template(
        "full_report.html",
        domain=domain,
        page_count=len(records),
        average_score=average_score,
    )
    send_email(
        to_email,
        f"Full Audit Report - {domain}",
        html_content,
        attachments=[
            Attachment(
                filename=f"audit-report-{safe_domain}.csv",
                content=build_full_csv(records).encode("utf-8"),
                mime_subtype="csv",
            ),
            Attachment(
                filename=f"audit-report-{safe_domain}.pdf",
                content=build_pdf_report(records, domain),
                mime_subtype="pdf",
            ),
        ],
    )
