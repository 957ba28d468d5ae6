import asyncio

import pytest

from cwv_auditor.features.scan.schemas.scan import (
    PageStatus,
    ScanSessionStatus,
    ScanStartRequest,
)
from cwv_auditor.features.scan.services.orchestration.orchestrator import ScanOrchestrator
from cwv_auditor.features.scan.services.scan_manager import ScanManager, prepare_worklist
from cwv_auditor.features.sitemap.schemas.sitemap import DiscoveredPage, PageCategory
from cwv_auditor.platform.exceptions import InputError

from fakes import FakeMetricsClient, GatedMetricsClient, RecordingAuditRecorder, make_pages


def request_for(pages, **kwargs):
    return ScanStartRequest(domain="example.com", urls=pages, **kwargs)


class TestPrepareWorklist:
    def test_duplicates_dropped_in_order(self):
        pages = make_pages(3)

        worklist = prepare_worklist([pages[0], pages[1], pages[0], pages[2]])

        assert [p.url for p in worklist] == [p.url for p in pages]

    def test_relative_url_rejected(self):
        with pytest.raises(InputError):
            prepare_worklist([DiscoveredPage(url="/about", category=PageCategory.main)])


class TestScanManager:
    @pytest.mark.asyncio
    async def test_start_runs_to_completion(self):
        recorder = RecordingAuditRecorder()
        manager = ScanManager(
            lambda request: ScanOrchestrator(FakeMetricsClient(), audit_recorder=recorder)
        )

        session = manager.start(request_for(make_pages(3)))
        await manager.wait(session.id)

        assert manager.get(session.id).status == ScanSessionStatus.completed
        assert recorder.page_counts == [3]

    @pytest.mark.asyncio
    async def test_empty_selection_rejected(self):
        manager = ScanManager(lambda request: ScanOrchestrator(FakeMetricsClient()))

        with pytest.raises(InputError):
            manager.start(request_for([]))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("domain", ["", "   ", "not a domain", "ftp://example.com"])
    async def test_malformed_domain_rejected_before_scan_starts(self, domain):
        client = FakeMetricsClient()
        manager = ScanManager(lambda request: ScanOrchestrator(client))

        with pytest.raises(InputError, match="Invalid domain"):
            manager.start(ScanStartRequest(domain=domain, urls=make_pages(1)))

        assert client.calls == []
        assert manager._sessions == {}

    @pytest.mark.asyncio
    async def test_new_scan_supersedes_same_owner(self):
        clients = []

        def factory(request):
            client = GatedMetricsClient()
            clients.append(client)
            return ScanOrchestrator(client)

        manager = ScanManager(factory)

        first = manager.start(request_for(make_pages(3), client_id="tab-1"))
        await clients[0].started.wait()
        second = manager.start(request_for(make_pages(2, "https://example.com/new-"), client_id="tab-1"))

        clients[0].gate.set()
        clients[1].gate.set()
        await manager.wait(first.id)
        await manager.wait(second.id)

        assert first.status == ScanSessionStatus.cancelled
        # the page in flight when superseded is still recorded, nothing after it
        assert [r.status for r in first.snapshot().records] == [
            PageStatus.success,
            PageStatus.pending,
            PageStatus.pending,
        ]
        assert second.status == ScanSessionStatus.completed

    @pytest.mark.asyncio
    async def test_different_owners_run_side_by_side(self):
        manager = ScanManager(lambda request: ScanOrchestrator(FakeMetricsClient(delay=0.001)))

        a = manager.start(request_for(make_pages(2), client_id="a"))
        b = manager.start(request_for(make_pages(2), client_id="b"))
        await manager.wait(a.id)
        await manager.wait(b.id)

        assert a.status == ScanSessionStatus.completed
        assert b.status == ScanSessionStatus.completed

    @pytest.mark.asyncio
    async def test_cancel_unknown_session_returns_none(self):
        manager = ScanManager(lambda request: ScanOrchestrator(FakeMetricsClient()))

        assert manager.cancel("missing") is None

    @pytest.mark.asyncio
    async def test_shutdown_cancels_in_flight_scans(self):
        client = GatedMetricsClient()
        manager = ScanManager(lambda request: ScanOrchestrator(client))

        session = manager.start(request_for(make_pages(2)))
        await client.started.wait()
        await manager.shutdown()

        assert session.status == ScanSessionStatus.cancelled

    @pytest.mark.asyncio
    async def test_finished_sessions_pruned(self):
        manager = ScanManager(
            lambda request: ScanOrchestrator(FakeMetricsClient()), max_retained=2
        )

        ids = []
        for n in range(4):
            session = manager.start(request_for(make_pages(1), client_id=f"owner-{n}"))
            await manager.wait(session.id)
            ids.append(session.id)

        assert manager.get(ids[0]) is None
        assert manager.get(ids[-1]) is not None
