from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from models import RATING_FIELDS, TEXT_FIELDS


MIN_REVIEWS_TO_FINALIZE = 5
MAX_PAGE_SIZE = 50
RATING_MIN = 1
RATING_MAX = 5

MATCH_POINTS = {"department": 2, "hostel": 3, "por": 2}
COMPOUND_BONUS = 3
TAG_SEPARATOR = " • "


class Program(str, Enum):
    ISMP = "ismp"
    DAMP = "damp"


class DenyReason(str, Enum):
    REVIEWS_DISABLED = "ReviewsDisabled"
    REVIEWEE_NOT_ACCEPTING = "RevieweeNotAccepting"
    CROSS_DEPARTMENT_DENIED = "CrossDepartmentDenied"
    CROSS_PROGRAM_DENIED = "CrossProgramDenied"
    ALREADY_FINALIZED = "AlreadyFinalized"
    INSUFFICIENT_REVIEWS = "InsufficientReviews"

    @property
    def message(self) -> str:
        return DENY_MESSAGES[self]


DENY_MESSAGES = {
    DenyReason.REVIEWS_DISABLED: "Review submissions are currently disabled.",
    DenyReason.REVIEWEE_NOT_ACCEPTING: "This user is not currently accepting reviews.",
    DenyReason.CROSS_DEPARTMENT_DENIED: "You can only review DAMP applicants from your department.",
    DenyReason.CROSS_PROGRAM_DENIED: "You can only review applicants from your program.",
    DenyReason.ALREADY_FINALIZED: "You have already finalized your reviews; they can no longer be changed.",
    DenyReason.INSUFFICIENT_REVIEWS: f"Write at least {MIN_REVIEWS_TO_FINALIZE} reviews before finalizing.",
}


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    DENIED = "denied"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    STORE_ERROR = "store_error"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def deny(reason: DenyReason) -> Decision:
    return Decision(False, reason)


@dataclass
class Outcome:
    """Result of a core operation. Business denials travel here, never as exceptions."""

    ok: bool
    error: ErrorKind | None = None
    reason: DenyReason | None = None
    message: str = ""
    field_errors: dict[str, str] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, message: str = "Success", **data: Any) -> "Outcome":
        return cls(True, message=message, data=data)

    @classmethod
    def denied(cls, reason: DenyReason) -> "Outcome":
        return cls(False, ErrorKind.DENIED, reason, reason.message)

    @classmethod
    def failure(cls, error: ErrorKind, message: str, **field_errors: str) -> "Outcome":
        return cls(False, error, None, message, dict(field_errors))


@dataclass
class MatchDetail:
    score: int
    count: int
    reasons: list[str]

    @property
    def tag(self) -> str:
        return TAG_SEPARATOR.join(self.reasons)


def field_of(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _program(obj: Any) -> str:
    return str(field_of(obj, "program", Program.ISMP.value) or Program.ISMP.value).lower()


def _same_value(left: Any, right: Any) -> bool:
    # Blank department/hostel never counts as a match.
    return bool(left) and left == right


def _por_set(obj: Any) -> set[str]:
    return {str(p) for p in (field_of(obj, "pors") or []) if str(p).strip()}


def program_compatible(reviewer: Any, reviewee: Any) -> Decision:
    reviewer_program = _program(reviewer)
    reviewee_program = _program(reviewee)
    if reviewer_program == Program.DAMP.value and reviewee_program == Program.DAMP.value:
        if field_of(reviewer, "department") != field_of(reviewee, "department"):
            return deny(DenyReason.CROSS_DEPARTMENT_DENIED)
        return ALLOW
    if reviewer_program != reviewee_program:
        return deny(DenyReason.CROSS_PROGRAM_DENIED)
    return ALLOW


def can_review(reviewer: Any, reviewee: Any, settings: Any = None) -> Decision:
    if not field_of(settings, "reviews_enabled", True):
        return deny(DenyReason.REVIEWS_DISABLED)
    if not field_of(reviewee, "accepting_reviews", True):
        return deny(DenyReason.REVIEWEE_NOT_ACCEPTING)
    compatible = program_compatible(reviewer, reviewee)
    if not compatible:
        return compatible
    if field_of(reviewer, "has_submitted", False):
        return deny(DenyReason.ALREADY_FINALIZED)
    return ALLOW


def _parse_rating(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_review(ratings: dict[str, Any], texts: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
    cleaned: dict[str, Any] = {}
    errors: dict[str, str] = {}

    for name in RATING_FIELDS:
        rating = _parse_rating((ratings or {}).get(name))
        if rating is None:
            errors[name] = "Rating must be a whole number."
        elif not RATING_MIN <= rating <= RATING_MAX:
            errors[name] = f"Rating must be between {RATING_MIN} and {RATING_MAX}."
        else:
            cleaned[name] = rating

    for name in TEXT_FIELDS:
        text = str((texts or {}).get(name) or "").strip()
        if not text:
            errors[name] = "This field is required."
        else:
            cleaned[name] = text

    return cleaned, errors


def score_match(reviewer: Any, candidate: Any) -> MatchDetail:
    score = 0
    count = 0
    reasons: list[str] = []

    if _same_value(field_of(reviewer, "department"), field_of(candidate, "department")):
        score += MATCH_POINTS["department"]
        count += 1
        reasons.append("Same Dept")

    if _same_value(field_of(reviewer, "hostel"), field_of(candidate, "hostel")):
        score += MATCH_POINTS["hostel"]
        count += 1
        reasons.append("Same Hostel")

    shared = _por_set(reviewer) & _por_set(candidate)
    if shared:
        score += MATCH_POINTS["por"] * len(shared)
        count += 1
        reasons.append(f"{len(shared)} Shared POR" if len(shared) == 1 else f"{len(shared)} Shared PORs")

    if count > 1:
        score += count * COMPOUND_BONUS

    return MatchDetail(score, count, reasons)


def is_candidate(reviewer: Any, candidate: Any) -> bool:
    if str(field_of(candidate, "id")) == str(field_of(reviewer, "id")):
        return False
    if field_of(candidate, "is_admin", False) or field_of(candidate, "is_dept_head", False):
        return False
    if not field_of(candidate, "accepting_reviews", True):
        return False
    return bool(program_compatible(reviewer, candidate))


def clamp_page(skip: Any, take: Any, default_take: int = 20) -> tuple[int, int]:
    try:
        skip_value = max(0, int(skip or 0))
    except (TypeError, ValueError):
        skip_value = 0
    try:
        take_value = int(take) if take is not None else default_take
    except (TypeError, ValueError):
        take_value = default_take
    return skip_value, min(MAX_PAGE_SIZE, max(1, take_value))


def candidate_summary(candidate: Any, has_reviewed: bool) -> dict[str, Any]:
    return {
        "id": str(field_of(candidate, "id")),
        "name": field_of(candidate, "name"),
        "department": field_of(candidate, "department"),
        "year": field_of(candidate, "year"),
        "hostel": field_of(candidate, "hostel"),
        "program": _program(candidate),
        "has_reviewed": has_reviewed,
    }


def rank_candidates(reviewer: Any, candidate_pool: Iterable[Any]) -> list[tuple[Any, MatchDetail]]:
    ranked: list[tuple[Any, MatchDetail]] = []
    for candidate in candidate_pool:
        if not is_candidate(reviewer, candidate):
            continue
        detail = score_match(reviewer, candidate)
        if detail.count == 0:
            continue
        ranked.append((candidate, detail))
    ranked.sort(key=lambda item: (-item[1].count, -item[1].score, str(field_of(item[0], "name") or "")))
    return ranked


def recommend(
    reviewer: Any,
    candidate_pool: Iterable[Any],
    skip: int = 0,
    take: int = 20,
    reviewed_ids: Iterable[Any] | None = None,
) -> dict[str, Any]:
    skip, take = clamp_page(skip, take)
    reviewed = {str(item) for item in (reviewed_ids or [])}
    window = rank_candidates(reviewer, candidate_pool)[skip : skip + take + 1]

    items = []
    for candidate, detail in window[:take]:
        summary = candidate_summary(candidate, str(field_of(candidate, "id")) in reviewed)
        summary.update(
            {
                "match_tag": detail.tag,
                "match_score": detail.score,
                "match_count": detail.count,
            }
        )
        items.append(summary)

    return {"items": items, "has_more": len(window) > take, "skip": skip, "take": take}


def review_average(review: Any) -> float:
    values = [int(field_of(review, name, 0) or 0) for name in RATING_FIELDS]
    return round(sum(values) / len(values), 2)


def rating_distribution(reviews: Iterable[Any]) -> dict[str, dict[str, Any]]:
    rows = list(reviews)
    distribution: dict[str, dict[str, Any]] = {}
    for name in RATING_FIELDS:
        counts = {value: 0 for value in range(RATING_MIN, RATING_MAX + 1)}
        total = 0
        for review in rows:
            value = int(field_of(review, name, 0) or 0)
            if value in counts:
                counts[value] += 1
                total += value
        answered = sum(counts.values())
        distribution[name] = {
            "counts": counts,
            "mean": round(total / answered, 2) if answered else None,
            "total": answered,
        }
    return distribution
