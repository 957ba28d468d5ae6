"""
In-process registry of scan sessions.

Each started scan runs as an asyncio task. Starting a new scan for an owner
that already has one running cancels the older session, so at most one scan
per owner is ever issuing fetches.
"""
import asyncio
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from cwv_auditor.features.audits.services.audit_service import DatabaseAuditRecorder
from cwv_auditor.features.reports.services.exporters import EmailBatchExporter
from cwv_auditor.features.scan.schemas.scan import ScanStartRequest
from cwv_auditor.features.scan.services.orchestration.orchestrator import (
    ScanOrchestrator,
    ScanSession,
)
from cwv_auditor.features.scan.services.orchestration.side_effects import NullBatchExporter
from cwv_auditor.features.scan.workers.sse_publisher import publish_scan_progress
from cwv_auditor.features.sitemap.schemas.sitemap import DiscoveredPage
from cwv_auditor.features.vitals.services.pagespeed_client import get_pagespeed_client
from cwv_auditor.platform.exceptions import InputError
from cwv_auditor.platform.logger import get_logger
from cwv_auditor.platform.utils.url_validator import is_absolute_http_url, validate_url

logger = get_logger(__name__)

OrchestratorFactory = Callable[[ScanStartRequest], ScanOrchestrator]

MAX_RETAINED_SESSIONS = 100


def build_orchestrator(request: ScanStartRequest) -> ScanOrchestrator:
    email = str(request.email) if request.email else None
    return ScanOrchestrator(
        metrics_client=get_pagespeed_client(),
        batch_exporter=EmailBatchExporter(email) if email else NullBatchExporter(),
        audit_recorder=DatabaseAuditRecorder(request.domain, email),
        observer=publish_scan_progress,
    )


def prepare_worklist(pages: List[DiscoveredPage]) -> List[DiscoveredPage]:
    """Reject non-absolute URLs and drop repeats, keeping first occurrence order."""
    seen = set()
    worklist = []
    for page in pages:
        if not is_absolute_http_url(page.url):
            raise InputError(f"Invalid page URL: {page.url!r} (must be an absolute http(s) URL)")
        if page.url in seen:
            continue
        seen.add(page.url)
        worklist.append(page)
    return worklist


class ScanManager:
    def __init__(
        self,
        orchestrator_factory: OrchestratorFactory = build_orchestrator,
        batch_size: Optional[int] = None,
        max_retained: int = MAX_RETAINED_SESSIONS,
    ):
        self.orchestrator_factory = orchestrator_factory
        self.batch_size = batch_size
        self.max_retained = max_retained
        self._sessions: "OrderedDict[str, ScanSession]" = OrderedDict()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._active_by_owner: Dict[str, str] = {}

    def start(self, request: ScanStartRequest) -> ScanSession:
        """Create a session for the request and start running it in the background."""
        is_valid, _, error = validate_url(request.domain)
        if not is_valid:
            raise InputError(f"Invalid domain: {error}")

        worklist = prepare_worklist(request.urls)
        session = ScanSession(worklist, request.domain, batch_size=self.batch_size)

        owner = request.owner_key
        previous_id = self._active_by_owner.get(owner)
        if previous_id is not None:
            previous = self._sessions.get(previous_id)
            if previous is not None and not previous.is_finished:
                logger.info(f"Scan {previous_id} superseded by {session.id} for {owner}")
                previous.cancel()

        orchestrator = self.orchestrator_factory(request)
        task = asyncio.create_task(orchestrator.run(session), name=f"scan-{session.id}")
        task.add_done_callback(lambda t, sid=session.id, key=owner: self._on_done(sid, key, t))

        self._sessions[session.id] = session
        self._tasks[session.id] = task
        self._active_by_owner[owner] = session.id
        self._prune()

        logger.info(f"Started scan {session.id} for {request.domain}: {session.total} pages")
        return session

    def get(self, session_id: str) -> Optional[ScanSession]:
        return self._sessions.get(session_id)

    def cancel(self, session_id: str) -> Optional[ScanSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            session.cancel()
        return session

    async def wait(self, session_id: str) -> None:
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every running scan, including fetches already in flight."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for session in self._sessions.values():
            session.cancel()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} running scans on shutdown")

    def _on_done(self, session_id: str, owner: str, task: asyncio.Task) -> None:
        self._tasks.pop(session_id, None)
        if self._active_by_owner.get(owner) == session_id:
            del self._active_by_owner[owner]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Scan {session_id} crashed: {task.exception()!r}")

    def _prune(self) -> None:
        finished = [sid for sid, s in self._sessions.items() if s.is_finished]
        excess = len(self._sessions) - self.max_retained
        for session_id in finished[:max(excess, 0)]:
            del self._sessions[session_id]


_scan_manager: Optional[ScanManager] = None


def get_scan_manager() -> ScanManager:
    global _scan_manager

    if _scan_manager is None:
        _scan_manager = ScanManager()

    return _scan_manager
