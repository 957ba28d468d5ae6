"""Full-report PDF: a vitals table followed by per-page optimization insights."""
import io
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from urllib.parse import urlparse
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from cwv_auditor.features.scan.schemas.scan import PageRecord

TABLE_HEADER = ["Path", "Category", "LCP", "INP", "CLS", "Score"]


def _path(url: str) -> str:
    return urlparse(url).path or "/"


def _fmt(value: Optional[float], fmt: str) -> str:
    # zero is rendered as "-" like a missing value, the report never shows a 0 metric
    if not value:
        return "-"
    return fmt.format(value)


def vitals_row(record: PageRecord) -> List[str]:
    m = record.metrics
    return [
        _path(record.url),
        record.category.value,
        _fmt(m.lcp / 1000 if m and m.lcp else None, "{:.2f}s"),
        _fmt(m.inp if m else None, "{:.0f}ms"),
        _fmt(m.cls if m else None, "{:.3f}"),
        _fmt(m.performance_score if m else None, "{:.0f}"),
    ]


def table_rows(records: Sequence[PageRecord], path_style: ParagraphStyle) -> list:
    """Header plus one row per record, with the path wrapped to fit its column."""
    rows = [TABLE_HEADER]
    for record in records:
        row = vitals_row(record)
        rows.append([Paragraph(escape(row[0]), path_style)] + row[1:])
    return rows


def build_pdf_report(
    records: Sequence[PageRecord],
    domain: str,
    generated_at: Optional[datetime] = None,
) -> bytes:
    generated_at = generated_at or datetime.now(timezone.utc)
    styles = getSampleStyleSheet()
    path_style = ParagraphStyle("VitalsPath", parent=styles["BodyText"], fontSize=8, leading=10)
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=16 * mm,
        bottomMargin=16 * mm,
        title=f"Core Web Vitals Audit Report: {domain}",
    )

    story = [
        Paragraph(escape(f"Core Web Vitals Audit Report: {domain}"), styles["Title"]),
        Paragraph(
            f"Generated on {generated_at.strftime('%Y-%m-%d %H:%M UTC')}",
            styles["Normal"],
        ),
        Spacer(1, 6 * mm),
    ]

    table = Table(
        table_rows(records, path_style),
        colWidths=[70 * mm, 22 * mm, 20 * mm, 20 * mm, 20 * mm, 18 * mm],
        repeatRows=1,
    )
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.black),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f2f2f2")]),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    story.append(table)

    story.append(PageBreak())
    story.append(Paragraph("Optimization Insights", styles["Heading1"]))

    for record in records:
        if not record.metrics or not record.metrics.insights:
            continue
        story.append(Paragraph(escape(_path(record.url)), styles["Heading4"]))
        for insight in record.metrics.insights:
            story.append(Paragraph(
                f"<b>{escape(insight.title)}</b>: {escape(insight.description)}",
                styles["BodyText"],
            ))
        story.append(Spacer(1, 3 * mm))

    doc.build(story)
    return buffer.getvalue()
