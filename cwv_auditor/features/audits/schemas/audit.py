from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class RecordAuditRequest(BaseModel):
    domain: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    pages_analyzed: int = Field(..., ge=0)

    class Config:
        json_schema_extra = {
            "example": {"domain": "example.com", "email": "owner@example.com", "pages_analyzed": 42}
        }


class AuditStats(BaseModel):
    total_audits: int
    total_pages_analyzed: int
    emails: List[str]
