import csv
import io
from typing import Callable, List, Optional, Sequence, Tuple

from cwv_auditor.features.scan.schemas.scan import PageRecord


def _metric(name: str) -> Callable[[PageRecord], Optional[float]]:
    def getter(record: PageRecord):
        return getattr(record.metrics, name) if record.metrics else None
    return getter


def format_insights(record: PageRecord) -> str:
    if not record.metrics:
        return ""
    return " | ".join(f"{i.title}: {i.description}" for i in record.metrics.insights)


Column = Tuple[str, Callable[[PageRecord], object]]

BATCH_COLUMNS: List[Column] = [
    ("URL", lambda r: r.url),
    ("LCP (ms)", _metric("lcp")),
    ("INP (ms)", _metric("inp")),
    ("CLS", _metric("cls")),
    ("Performance Score", _metric("performance_score")),
    ("Insights", format_insights),
]

FULL_REPORT_COLUMNS: List[Column] = [
    BATCH_COLUMNS[0],
    ("Category", lambda r: r.category.value),
    *BATCH_COLUMNS[1:],
]


def build_csv(records: Sequence[PageRecord], columns: Sequence[Column]) -> str:
    """Render records as CSV; missing metrics become empty cells."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL)
    writer.writerow([label for label, _ in columns])
    for record in records:
        row = []
        for _, getter in columns:
            value = getter(record)
            row.append("" if value is None else value)
        writer.writerow(row)
    return buffer.getvalue()


def build_batch_csv(records: Sequence[PageRecord]) -> str:
    return build_csv(records, BATCH_COLUMNS)


def build_full_csv(records: Sequence[PageRecord]) -> str:
    return build_csv(records, FULL_REPORT_COLUMNS)
