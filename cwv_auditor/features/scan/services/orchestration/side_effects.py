"""
Collaborator contracts the orchestrator calls at batch closure and session end.

Implementations live with the features that own the concern
(reports/services/exporters.py, audits/services/audit_service.py).
"""
from typing import Awaitable, Callable, Protocol, Sequence, Union

from cwv_auditor.features.scan.schemas.scan import PageRecord, ScanProgressEvent
from cwv_auditor.features.vitals.schemas.vitals import MetricsBundle


class MetricsClient(Protocol):
    async def fetch_vitals(self, url: str) -> MetricsBundle:
        """Return normalized metrics or raise FetchError."""


class BatchExporter(Protocol):
    async def export_batch(self, records: Sequence[PageRecord], batch_ordinal: int) -> None:
        """Deliver one closed batch. Raising marks the export as failed."""


class AuditRecorder(Protocol):
    async def record_audit(self, page_count: int) -> None:
        """Persist that a scan over `page_count` pages finished."""


ScanObserver = Callable[[ScanProgressEvent], Union[Awaitable[None], None]]


class NullBatchExporter:
    """Used when the caller gave no delivery address."""

    async def export_batch(self, records: Sequence[PageRecord], batch_ordinal: int) -> None:
        return None


class NullAuditRecorder:
    async def record_audit(self, page_count: int) -> None:
        return None
