"""Core Web Vitals severity bands (web.dev thresholds, inclusive upper bounds)."""
from enum import Enum


class Severity(str, Enum):
    good = "good"
    needs_improvement = "needs-improvement"
    poor = "poor"


LCP_THRESHOLDS = (2500, 4000)  # ms
INP_THRESHOLDS = (200, 500)  # ms
CLS_THRESHOLDS = (0.1, 0.25)


def _classify(value: float, thresholds: tuple) -> Severity:
    good, needs_improvement = thresholds
    if value <= good:
        return Severity.good
    if value <= needs_improvement:
        return Severity.needs_improvement
    return Severity.poor


def lcp_severity(value: float) -> Severity:
    return _classify(value, LCP_THRESHOLDS)


def inp_severity(value: float) -> Severity:
    return _classify(value, INP_THRESHOLDS)


def cls_severity(value: float) -> Severity:
    return _classify(value, CLS_THRESHOLDS)
