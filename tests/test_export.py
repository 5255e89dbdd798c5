import json
import uuid
from datetime import datetime, timezone

from export import build_json_summary, build_pdf_report
from models import RATING_FIELDS


def detail_payload(comment: str) -> dict:
    review = {name: 4 for name in RATING_FIELDS}
    review.update(
        other_name="Kabir <K> & co",
        substance_abuse="none",
        ismp_mentor=comment,
        other_comments="<i>unclosed",
        average=4.0,
    )
    return {
        "user": {
            "id": uuid.uuid4(),
            "name": "Asha & Rao",
            "email": "22b0101@iitb.ac.in",
            "department": "Computer Science",
            "year": 3,
            "hostel": "Hostel 5",
            "program": "ismp",
            "pors": ["R&D Cell", "WnCC"],
            "has_submitted": True,
            "submitted_at": datetime(2024, 3, 1, tzinfo=timezone.utc),
        },
        "reviews_received": [review],
        "reviews_written": [dict(review, other_name="Diya <Menon>")],
        "distribution": {name: {"counts": {4: 1}, "mean": 4.0, "total": 1} for name in RATING_FIELDS},
        "overall_average": 4.0,
    }


def test_pdf_report_accepts_markup_characters_in_user_text() -> None:
    pdf = build_pdf_report(detail_payload("yes & <b>great"))
    assert pdf.startswith(b"%PDF")


def test_json_summary_stringifies_ids_and_dates() -> None:
    payload = detail_payload("fine")
    data = json.loads(build_json_summary(payload))
    assert data["user"]["id"] == str(payload["user"]["id"])
    assert data["user"]["submitted_at"].startswith("2024-03-01")
    assert data["reviews_received"][0]["ismp_mentor"] == "fine"
