"""
Scan Schemas

Per-page records with their status state machine, session snapshots, and the
request/response models for the scan API endpoints.
"""
import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from cwv_auditor.features.sitemap.schemas.sitemap import DiscoveredPage, PageCategory
from cwv_auditor.features.vitals.schemas.vitals import MetricsBundle


class PageStatus(str, enum.Enum):
    """Per-page state machine: pending -> loading -> success | error"""
    pending = "pending"
    loading = "loading"
    success = "success"
    error = "error"


TERMINAL_STATUSES = frozenset({PageStatus.success, PageStatus.error})

_ALLOWED_TRANSITIONS = {
    PageStatus.pending: {PageStatus.loading},
    PageStatus.loading: {PageStatus.success, PageStatus.error},
    PageStatus.success: set(),
    PageStatus.error: set(),
}


class InvalidTransition(ValueError):
    pass


class PageRecord(BaseModel):
    """
    One discovered URL and its audit outcome.

    Records are immutable; every transition returns a new record so snapshots
    handed to observers can never be changed underneath them.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    category: PageCategory
    status: PageStatus = PageStatus.pending
    metrics: Optional[MetricsBundle] = None
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def _metrics_only_on_success(self):
        if (self.metrics is not None) != (self.status == PageStatus.success):
            raise ValueError("metrics must be present if and only if status is 'success'")
        return self

    @classmethod
    def pending_for(cls, page: DiscoveredPage) -> "PageRecord":
        return cls(url=page.url, category=page.category)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _transition(self, target: PageStatus, **changes) -> "PageRecord":
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(f"{self.url}: cannot move from {self.status.value} to {target.value}")
        # model_validate rather than model_copy so the metrics invariant is rechecked
        return type(self).model_validate({**dict(self), "status": target, **changes})

    def mark_loading(self) -> "PageRecord":
        return self._transition(PageStatus.loading)

    def mark_success(self, metrics: MetricsBundle) -> "PageRecord":
        return self._transition(PageStatus.success, metrics=metrics)

    def mark_error(self, message: Optional[str] = None) -> "PageRecord":
        return self._transition(PageStatus.error, error_message=message)


class ScanSessionStatus(str, enum.Enum):
    running = "running"
    completed = "completed"
    cancelled = "cancelled"


class ScanProgress(BaseModel):
    current: int
    total: int


class ScanSnapshot(BaseModel):
    """Read-only view of a scan session at one instant."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    domain: str
    status: ScanSessionStatus
    progress: ScanProgress
    batches_closed: int
    batches_total: int
    export_failures: int
    records: List[PageRecord]
    started_at: datetime
    finished_at: Optional[datetime] = None


class ScanProgressEvent(BaseModel):
    """
    One observable change of a session. Carries only the record that changed
    (if any) plus the counters, so its size does not depend on the worklist.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    status: ScanSessionStatus
    index: Optional[int] = None
    record: Optional[PageRecord] = None
    progress: ScanProgress
    batches_closed: int
    batches_total: int
    export_failures: int


# ============================================================================
# API Schemas
# ============================================================================

class ScanStartRequest(BaseModel):
    """Start a scan over a caller-selected subset of discovered pages."""
    domain: str
    email: Optional[EmailStr] = None
    urls: List[DiscoveredPage] = Field(default_factory=list)
    client_id: Optional[str] = Field(
        None,
        description="Scans sharing a client_id supersede each other; defaults to email or domain",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "domain": "example.com",
                "email": "owner@example.com",
                "urls": [
                    {"url": "https://example.com/", "category": "main"},
                    {"url": "https://example.com/blog/launch", "category": "cms"},
                ],
            }
        }

    @property
    def owner_key(self) -> str:
        return self.client_id or (str(self.email) if self.email else self.domain.strip().lower())
