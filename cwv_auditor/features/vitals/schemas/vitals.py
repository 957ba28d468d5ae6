from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from cwv_auditor.features.vitals.services.severity import (
    Severity,
    cls_severity,
    inp_severity,
    lcp_severity,
)


class Insight(BaseModel):
    """One actionable Lighthouse audit that scored below the passing line."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    score: float


class MetricsBundle(BaseModel):
    """Normalized Core Web Vitals for one page."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "lcp": 2140,
                "inp": 180,
                "cls": 0.07,
                "performanceScore": 93,
                "insights": [
                    {
                        "title": "Reduce unused JavaScript",
                        "description": "Reduce unused JavaScript and defer loading scripts.",
                        "score": 0.45,
                    }
                ],
            }
        },
    )

    lcp: Optional[float] = Field(None, description="Largest Contentful Paint, ms")
    inp: Optional[float] = Field(None, description="Interaction to Next Paint, ms")
    cls: Optional[float] = Field(None, description="Cumulative Layout Shift, unitless")
    performance_score: float = Field(..., ge=0, le=100, alias="performanceScore")
    insights: List[Insight] = Field(default_factory=list)

    @computed_field
    @property
    def severities(self) -> Dict[str, Optional[Severity]]:
        return {
            "lcp": lcp_severity(self.lcp) if self.lcp is not None else None,
            "inp": inp_severity(self.inp) if self.inp is not None else None,
            "cls": cls_severity(self.cls) if self.cls is not None else None,
        }
