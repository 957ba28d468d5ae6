from fastapi import APIRouter, status

from cwv_auditor.features.reports.schemas.reports import (
    BatchExportRequest,
    ExportResult,
    FullReportRequest,
)
from cwv_auditor.features.reports.services.exporters import (
    EmailBatchExporter,
    export_full_report,
)
from cwv_auditor.platform.logger import get_logger
from cwv_auditor.platform.response import api_response

logger = get_logger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("/export-email", summary="Email one batch of results as CSV")
async def export_batch_email(request: BatchExportRequest):
    exporter = EmailBatchExporter(str(request.email))
    await exporter.export_batch(request.data, request.batch_index)

    return api_response(
        data=ExportResult(email=str(request.email), page_count=len(request.data)),
        message=f"Batch {request.batch_index + 1} sent successfully",
        status_code=status.HTTP_200_OK,
    )


@router.post("/export-full-report", summary="Email the full audit as CSV and PDF")
async def export_full_report_email(request: FullReportRequest):
    """
    Failed and unfinished pages are dropped before the report is built.
    Delivery problems surface as 500 through the ExportError handler.
    """
    page_count = await export_full_report(request.data, request.domain, str(request.email))

    return api_response(
        data=ExportResult(email=str(request.email), page_count=page_count),
        message="Full report sent successfully",
        status_code=status.HTTP_200_OK,
    )
