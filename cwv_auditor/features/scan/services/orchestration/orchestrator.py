"""
Sequential scan orchestration.

A ScanSession owns the worklist and its results; a ScanOrchestrator drives one
session to completion: one URL in flight at a time, batch exports dispatched
as detached tasks when a batch closes, and a single audit record once the
worklist is exhausted. Progress events go to the observer through a
ProgressRelay so the loop never waits on them. Cancellation is cooperative
and only observed between pages.
"""
import asyncio
import inspect
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Set, Tuple

from uuid_extension import uuid7

from cwv_auditor.features.scan.schemas.scan import (
    PageRecord,
    ScanProgress,
    ScanProgressEvent,
    ScanSessionStatus,
    ScanSnapshot,
)
from cwv_auditor.features.scan.services.orchestration.batching import (
    batch_count,
    batch_ordinal,
    batch_start,
    closes_batch,
)
from cwv_auditor.features.scan.services.orchestration.side_effects import (
    AuditRecorder,
    BatchExporter,
    MetricsClient,
    NullAuditRecorder,
    NullBatchExporter,
    ScanObserver,
)
from cwv_auditor.features.sitemap.schemas.sitemap import DiscoveredPage
from cwv_auditor.platform.config import settings
from cwv_auditor.platform.exceptions import FetchError, InputError
from cwv_auditor.platform.logger import get_logger

logger = get_logger(__name__)


class ScanSession:
    """
    State of one scan pass.

    Every record starts as pending before anything is fetched. Only the
    orchestrator running this session writes to it; everyone else reads
    snapshots.
    """

    def __init__(
        self,
        pages: Sequence[DiscoveredPage],
        domain: str,
        batch_size: Optional[int] = None,
        session_id: Optional[str] = None,
    ):
        if not pages:
            raise InputError("Please select at least one page to analyze.")

        self.id = session_id or str(uuid7())
        self.domain = domain
        self.worklist: Tuple[DiscoveredPage, ...] = tuple(pages)
        self.batch_size = batch_size or settings.SCAN_BATCH_SIZE
        self.results: Dict[int, PageRecord] = {
            index: PageRecord.pending_for(page) for index, page in enumerate(self.worklist)
        }
        self.cursor = 0
        self.status = ScanSessionStatus.running
        self.batches_closed = 0
        self.export_failures = 0
        self.started_at = datetime.now(timezone.utc)
        self.finished_at: Optional[datetime] = None
        self._cancelled = False
        self._export_tasks: Set[asyncio.Task] = set()

    @property
    def total(self) -> int:
        return len(self.worklist)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_finished(self) -> bool:
        return self.status != ScanSessionStatus.running

    def cancel(self) -> None:
        """Stop issuing fetches. A fetch already in flight still gets recorded."""
        if not self._cancelled and not self.is_finished:
            logger.info(f"[{self.id}] Cancellation requested at cursor {self.cursor}/{self.total}")
        self._cancelled = True

    def batch_records(self, index: int) -> List[PageRecord]:
        """Records of the batch that `index` belongs to, up to and including `index`."""
        return [self.results[i] for i in range(batch_start(index, self.batch_size), index + 1)]

    def track_export(self, task: asyncio.Task) -> None:
        self._export_tasks.add(task)
        task.add_done_callback(self._export_tasks.discard)

    async def wait_for_exports(self) -> None:
        if self._export_tasks:
            await asyncio.gather(*list(self._export_tasks), return_exceptions=True)

    def finish(self) -> None:
        if self.is_finished:
            return
        self.status = ScanSessionStatus.cancelled if self._cancelled else ScanSessionStatus.completed
        self.finished_at = datetime.now(timezone.utc)

    def snapshot(self) -> ScanSnapshot:
        return ScanSnapshot(
            session_id=self.id,
            domain=self.domain,
            status=self.status,
            progress=ScanProgress(current=self.cursor, total=self.total),
            batches_closed=self.batches_closed,
            batches_total=batch_count(self.total, self.batch_size),
            export_failures=self.export_failures,
            records=[self.results[i] for i in range(self.total)],
            started_at=self.started_at,
            finished_at=self.finished_at,
        )

    def progress_event(self, index: Optional[int] = None) -> ScanProgressEvent:
        """Counters plus the record at `index`, when a single record changed."""
        return ScanProgressEvent(
            session_id=self.id,
            status=self.status,
            index=index,
            record=self.results[index] if index is not None else None,
            progress=ScanProgress(current=self.cursor, total=self.total),
            batches_closed=self.batches_closed,
            batches_total=batch_count(self.total, self.batch_size),
            export_failures=self.export_failures,
        )


class ProgressRelay:
    """
    Delivers progress events to an observer in order, on its own task.

    The scan loop only enqueues; a slow or hung observer delays the events,
    never the fetches.
    """

    def __init__(self, observer: ScanObserver, session_id: str):
        self.observer = observer
        self.session_id = session_id
        self._queue: "asyncio.Queue[Optional[ScanProgressEvent]]" = asyncio.Queue()
        self._task = asyncio.create_task(self._deliver(), name=f"scan-{session_id}-progress")

    def push(self, event: ScanProgressEvent) -> None:
        self._queue.put_nowait(event)

    async def close(self, timeout: float) -> None:
        """Deliver what is queued, giving up after `timeout` seconds."""
        self._queue.put_nowait(None)
        try:
            await asyncio.wait_for(self._task, timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"[{self.session_id}] Scan observer still busy after {timeout}s, "
                f"dropping {self._queue.qsize()} queued events"
            )

    def abort(self) -> None:
        self._task.cancel()

    async def _deliver(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            try:
                result = self.observer(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"[{self.session_id}] Scan observer failed: {e}")


class ScanOrchestrator:
    def __init__(
        self,
        metrics_client: MetricsClient,
        batch_exporter: Optional[BatchExporter] = None,
        audit_recorder: Optional[AuditRecorder] = None,
        observer: Optional[ScanObserver] = None,
        progress_drain_timeout: Optional[float] = None,
    ):
        self.metrics_client = metrics_client
        self.batch_exporter = batch_exporter or NullBatchExporter()
        self.audit_recorder = audit_recorder or NullAuditRecorder()
        self.observer = observer
        if progress_drain_timeout is None:
            progress_drain_timeout = settings.PROGRESS_DRAIN_TIMEOUT
        self.progress_drain_timeout = progress_drain_timeout

    async def run(self, session: ScanSession) -> ScanSnapshot:
        logger.info(f"[{session.id}] Starting scan of {session.total} pages for {session.domain}")
        relay = ProgressRelay(self.observer, session.id) if self.observer else None
        self._notify(relay, session)

        try:
            while session.cursor < session.total and not session.cancelled:
                index = session.cursor
                await self._process(session, index, relay)

                if closes_batch(index, session.total, session.batch_size):
                    self._dispatch_export(session, index)

                session.cursor += 1
                self._notify(relay, session, index)

            if not session.cancelled:
                # exports run detached; the audit record is the one ordering point
                await session.wait_for_exports()
                await self._record_audit(session)
        except asyncio.CancelledError:
            session.cancel()
            if relay is not None:
                relay.abort()
            raise
        finally:
            session.finish()

        logger.info(
            f"[{session.id}] Scan {session.status.value}: "
            f"{session.cursor}/{session.total} pages processed, {session.batches_closed} batches closed"
        )
        self._notify(relay, session)
        if relay is not None:
            await relay.close(self.progress_drain_timeout)
        return session.snapshot()

    async def _process(self, session: ScanSession, index: int, relay: Optional[ProgressRelay]) -> None:
        url = session.worklist[index].url
        session.results[index] = session.results[index].mark_loading()
        self._notify(relay, session, index)

        try:
            metrics = await self.metrics_client.fetch_vitals(url)
        except FetchError as e:
            logger.warning(f"[{session.id}] {e}")
            session.results[index] = session.results[index].mark_error(e.reason)
        except Exception as e:
            logger.error(f"[{session.id}] Unexpected error scoring {url}: {e!r}", exc_info=True)
            session.results[index] = session.results[index].mark_error("unexpected error")
        else:
            session.results[index] = session.results[index].mark_success(metrics)

    def _dispatch_export(self, session: ScanSession, index: int) -> None:
        ordinal = batch_ordinal(index, session.batch_size)
        records = session.batch_records(index)
        session.batches_closed += 1
        task = asyncio.create_task(
            self._export(session, records, ordinal),
            name=f"scan-{session.id}-export-{ordinal}",
        )
        session.track_export(task)

    async def _export(self, session: ScanSession, records: List[PageRecord], ordinal: int) -> None:
        try:
            await self.batch_exporter.export_batch(records, ordinal)
            logger.info(f"[{session.id}] Exported batch {ordinal + 1} ({len(records)} pages)")
        except Exception as e:
            session.export_failures += 1
            logger.error(f"[{session.id}] Failed to export batch {ordinal + 1}: {e}", exc_info=True)

    async def _record_audit(self, session: ScanSession) -> None:
        try:
            await self.audit_recorder.record_audit(session.cursor)
        except Exception as e:
            logger.error(f"[{session.id}] Failed to record audit: {e}", exc_info=True)

    @staticmethod
    def _notify(relay: Optional[ProgressRelay], session: ScanSession, index: Optional[int] = None) -> None:
        if relay is not None:
            relay.push(session.progress_event(index))
