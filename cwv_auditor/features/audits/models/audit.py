from sqlalchemy import Column, Integer, String

from cwv_auditor.platform.db.base import BaseModel


class Audit(BaseModel):
    """One finished scan: which site, who asked for it and how many pages were scored."""
    __tablename__ = "audits"

    domain = Column(String, nullable=False, index=True)
    email = Column(String, nullable=True, index=True)
    pages_analyzed = Column(Integer, nullable=False, default=0)
