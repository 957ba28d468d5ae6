import asyncio
from typing import List, Sequence

from cwv_auditor.features.reports.services.report_email import send_batch_report, send_full_report
from cwv_auditor.features.scan.schemas.scan import PageRecord, PageStatus
from cwv_auditor.platform.exceptions import InputError
from cwv_auditor.platform.logger import get_logger

logger = get_logger(__name__)


class EmailBatchExporter:
    """Mails each closed batch to one recipient. SMTP runs in a worker thread."""

    def __init__(self, email: str):
        self.email = email

    async def export_batch(self, records: Sequence[PageRecord], batch_ordinal: int) -> None:
        await asyncio.to_thread(send_batch_report, self.email, list(records), batch_ordinal)
        logger.info(f"Batch {batch_ordinal + 1} ({len(records)} pages) sent to {self.email}")


def successful_records(records: Sequence[PageRecord]) -> List[PageRecord]:
    return [r for r in records if r.status == PageStatus.success]


async def export_full_report(records: Sequence[PageRecord], domain: str, email: str) -> int:
    """
    Mail the CSV + PDF report for the successful records only.

    Returns how many pages went into the report; raises InputError when there
    is nothing to report and ExportError when delivery fails.
    """
    included = successful_records(records)
    if not included:
        raise InputError("No successfully scanned pages to include in the report")

    await asyncio.to_thread(send_full_report, email, included, domain)
    logger.info(f"Full report for {domain} ({len(included)} pages) sent to {email}")
    return len(included)
