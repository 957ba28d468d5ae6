from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cwv_auditor.features.audits.models.audit import Audit
from cwv_auditor.features.audits.schemas.audit import AuditStats
from cwv_auditor.platform.db.session import SessionLocal
from cwv_auditor.platform.logger import get_logger

logger = get_logger(__name__)


class AuditService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_audit(self, domain: str, email: Optional[str], pages_analyzed: int) -> Audit:
        audit = Audit(domain=domain, email=email or None, pages_analyzed=pages_analyzed)
        self.db.add(audit)
        await self.db.commit()
        await self.db.refresh(audit)
        logger.info(f"Recorded audit {audit.id} for {domain} ({pages_analyzed} pages)")
        return audit

    async def get_stats(self) -> AuditStats:
        total_audits = await self.db.scalar(select(func.count(Audit.id))) or 0
        total_pages = await self.db.scalar(select(func.sum(Audit.pages_analyzed))) or 0

        result = await self.db.execute(
            select(Audit.email).where(Audit.email.is_not(None)).distinct().order_by(Audit.email)
        )
        emails = [email for email in result.scalars().all()]

        return AuditStats(
            total_audits=total_audits,
            total_pages_analyzed=total_pages,
            emails=emails,
        )


class DatabaseAuditRecorder:
    """Writes the end-of-scan audit row in its own database session."""

    def __init__(self, domain: str, email: Optional[str] = None, session_factory=SessionLocal):
        self.domain = domain
        self.email = email
        self.session_factory = session_factory

    async def record_audit(self, page_count: int) -> None:
        async with self.session_factory() as db:
            await AuditService(db).record_audit(self.domain, self.email, page_count)
