"""
Metrics Client for the PageSpeed Insights v5 API.

One request per URL, no retry, no cache. The raw Lighthouse report is
normalized into a MetricsBundle preferring CrUX field data over lab data.
"""
import re
from typing import Any, Dict, List, Optional

import httpx

from cwv_auditor.features.vitals.schemas.vitals import Insight, MetricsBundle
from cwv_auditor.platform.config import settings
from cwv_auditor.platform.exceptions import FetchError
from cwv_auditor.platform.logger import get_logger

logger = get_logger(__name__)

INSIGHT_SCORE_CEILING = 0.9
INSIGHT_DETAIL_TYPES = {"opportunity", "critical-request-chains"}
MAX_INSIGHTS = 5

LEARN_MORE_RE = re.compile(r"\[Learn more\]\(.*\)\.")


def _field_percentile(field_metrics: Dict[str, Any], key: str) -> Optional[float]:
    metric = field_metrics.get(key) or {}
    return metric.get("percentile")


def _lab_value(audits: Dict[str, Any], audit_id: str) -> Optional[float]:
    audit = audits.get(audit_id) or {}
    return audit.get("numericValue")


def extract_insights(audits: Dict[str, Any]) -> List[Insight]:
    """
    Keep failing opportunities and critical request chains, in report order,
    truncated to MAX_INSIGHTS. "Learn more" links are stripped from descriptions.
    """
    insights = []
    for audit in audits.values():
        score = audit.get("score")
        if score is None or not isinstance(score, (int, float)) or score >= INSIGHT_SCORE_CEILING:
            continue
        detail_type = (audit.get("details") or {}).get("type")
        if detail_type not in INSIGHT_DETAIL_TYPES:
            continue
        insights.append(
            Insight(
                title=audit.get("title", ""),
                description=LEARN_MORE_RE.sub("", audit.get("description", "")).strip(),
                score=score,
            )
        )
    return insights[:MAX_INSIGHTS]


def normalize_report(data: Dict[str, Any]) -> MetricsBundle:
    """
    Turn a raw PSI response into a MetricsBundle.

    Field percentiles win when present and non-zero; otherwise the lab audit's
    numericValue is used. Field CLS is reported in hundredths and rescaled to
    a ratio; lab CLS is already a ratio and is passed through unchanged.

    Raises KeyError/TypeError when the report lacks a Lighthouse result.
    """
    lighthouse = data["lighthouseResult"]
    audits = lighthouse["audits"]
    field_metrics = (data.get("loadingExperience") or {}).get("metrics") or {}

    field_lcp = _field_percentile(field_metrics, "LARGEST_CONTENTFUL_PAINT_MS")
    field_inp = _field_percentile(field_metrics, "INTERACTION_TO_NEXT_PAINT")
    field_cls = _field_percentile(field_metrics, "CUMULATIVE_LAYOUT_SHIFT_SCORE")

    return MetricsBundle(
        lcp=field_lcp or _lab_value(audits, "largest-contentful-paint"),
        inp=field_inp or _lab_value(audits, "interactive"),
        cls=(field_cls / 100) if field_cls else _lab_value(audits, "cumulative-layout-shift"),
        performance_score=lighthouse["categories"]["performance"]["score"] * 100,
        insights=extract_insights(audits),
    )


class PageSpeedClient:
    """Fetches and normalizes Core Web Vitals for exactly one URL per call."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        strategy: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.PAGESPEED_API_KEY
        self.api_url = api_url or settings.PAGESPEED_API_URL
        self.strategy = strategy or settings.PAGESPEED_STRATEGY
        self.timeout = timeout or settings.PAGESPEED_TIMEOUT
        self.transport = transport

    def _params(self, url: str) -> Dict[str, str]:
        params = {"url": url, "category": "performance", "strategy": self.strategy}
        if self.api_key:
            params["key"] = self.api_key
        return params

    async def score_page(self, url: str) -> Dict[str, Any]:
        """Raw PSI report for `url`. Any non-2xx or transport failure is a FetchError."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.api_url, params=self._params(url))
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            body = e.response.text[:500]
            logger.warning(f"PSI returned {e.response.status_code} for {url}: {body}")
            raise FetchError(url, f"HTTP {e.response.status_code}", e.response.status_code) from e
        except httpx.RequestError as e:
            logger.warning(f"PSI request failed for {url}: {e!r}")
            raise FetchError(url, f"request error: {e.__class__.__name__}") from e
        except ValueError as e:
            raise FetchError(url, "response is not valid JSON") from e

    async def fetch_vitals(self, url: str) -> MetricsBundle:
        data = await self.score_page(url)
        try:
            return normalize_report(data)
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(url, f"malformed report: {e!r}") from e


def get_pagespeed_client() -> PageSpeedClient:
    return PageSpeedClient()
