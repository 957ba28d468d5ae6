from typing import List

from pydantic import BaseModel, EmailStr, Field

from cwv_auditor.features.scan.schemas.scan import PageRecord


class BatchExportRequest(BaseModel):
    """One batch of scanned records to mail as CSV."""
    email: EmailStr
    data: List[PageRecord] = Field(..., min_length=1)
    batch_index: int = Field(0, ge=0, description="Zero-based batch ordinal")


class FullReportRequest(BaseModel):
    """The whole audit; only records with status 'success' end up in the report."""
    email: EmailStr
    data: List[PageRecord]
    domain: str = Field(..., min_length=1)


class ExportResult(BaseModel):
    email: str
    page_count: int
