from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table

from models import RATING_FIELDS, TEXT_FIELDS


FIELD_LABELS = {
    "approachability": "Approachability",
    "academic_inclination": "Academic inclination",
    "work_ethics": "Work ethics",
    "maturity": "Maturity",
    "open_mindedness": "Open-mindedness",
    "academic_ethics": "Academic ethics",
    "substance_abuse": "Substance abuse",
    "ismp_mentor": "Fit as ISMP mentor",
    "other_comments": "Other comments",
}


def _safe_text(value: Any) -> str:
    # Paragraph parses its text as markup.
    if value is None or value == "":
        return "-"
    return escape(str(value))


def build_pdf_report(detail: dict[str, Any]) -> bytes:
    """Render an admin user-detail payload as a PDF."""
    buffer = io.BytesIO()
    user = detail.get("user", {})
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"SMP Review Report - {user.get('name') or '-'}")
    styles = getSampleStyleSheet()
    normal = styles["BodyText"]
    heading = styles["Heading2"]

    story = []
    story.append(Paragraph("SMP Peer Review Report", styles["Title"]))
    story.append(Paragraph(f"Generated: {datetime.now(timezone.utc).isoformat()}", normal))
    story.append(Spacer(1, 12))

    story.append(Paragraph("Profile", heading))
    for key in ["name", "email", "department", "year", "hostel", "program"]:
        story.append(Paragraph(f"{key.title()}: {_safe_text(user.get(key))}", normal))
    story.append(Paragraph(f"PORs: {_safe_text(', '.join(user.get('pors') or []))}", normal))
    story.append(Paragraph(f"Finalized: {'Yes' if user.get('has_submitted') else 'No'}", normal))
    story.append(Spacer(1, 8))

    received = detail.get("reviews_received", [])
    story.append(Paragraph(f"Rating Distribution ({len(received)} reviews received)", heading))
    distribution = detail.get("distribution", {})
    table_rows = [["Field", "1", "2", "3", "4", "5", "Mean"]]
    for name in RATING_FIELDS:
        stats = distribution.get(name, {})
        counts = stats.get("counts", {})
        table_rows.append(
            [FIELD_LABELS[name]]
            + [str(counts.get(value, 0)) for value in range(1, 6)]
            + [_safe_text(stats.get("mean"))]
        )
    story.append(Table(table_rows))
    story.append(Paragraph(f"Overall average: {_safe_text(detail.get('overall_average'))}", normal))
    story.append(Spacer(1, 8))

    if received:
        story.append(Paragraph("Comments Received", heading))
        for idx, review in enumerate(received, start=1):
            story.append(Paragraph(f"{idx}. From {_safe_text(review.get('other_name'))}", styles["Heading3"]))
            for name in TEXT_FIELDS:
                story.append(Paragraph(f"{FIELD_LABELS[name]}: {_safe_text(review.get(name))}", normal))
            story.append(Spacer(1, 6))

    written = detail.get("reviews_written", [])
    story.append(Paragraph(f"Reviews Written ({len(written)})", heading))
    for review in written:
        story.append(Paragraph(f"- {_safe_text(review.get('other_name'))}: average {_safe_text(review.get('average'))}", normal))

    doc.build(story)
    buffer.seek(0)
    return buffer.read()


def build_json_summary(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, indent=2, ensure_ascii=True, default=str).encode("utf-8")
