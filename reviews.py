from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from audit import RECOMMENDATIONS, REVIEW, SEARCH, SETTINGS, SUBMISSION, EventKind, guarded, record_event, to_uuid
from logic import (
    MIN_REVIEWS_TO_FINALIZE,
    DenyReason,
    ErrorKind,
    Outcome,
    Program,
    can_review,
    candidate_summary,
    clamp_page,
    recommend,
    review_average,
    validate_review,
)
from models import RATING_FIELDS, TEXT_FIELDS, Review, SystemSettings, User


DEFAULT_SETTINGS_TTL = 60.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class SettingsCache:
    """Short-lived in-process copy of the global kill-switch."""

    def __init__(self, ttl_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else _env_float("SMP_SETTINGS_CACHE_TTL", DEFAULT_SETTINGS_TTL)
        self._clock = clock
        self._value: bool | None = None
        self._loaded_at = 0.0

    def get(self, loader: Callable[[], bool]) -> bool:
        now = self._clock()
        if self._value is None or now - self._loaded_at >= self.ttl_seconds:
            self._value = bool(loader())
            self._loaded_at = now
        return self._value

    def invalidate(self) -> None:
        self._value = None


settings_cache = SettingsCache()


def _settings_rows(db: Session) -> list[SystemSettings]:
    return list(db.scalars(select(SystemSettings).order_by(SystemSettings.id)))


def is_reviews_enabled(db: Session) -> bool:
    row = db.scalars(select(SystemSettings).order_by(SystemSettings.id).limit(1)).first()
    return True if row is None else bool(row.reviews_enabled)


def cached_reviews_enabled(db: Session) -> bool:
    return settings_cache.get(lambda: is_reviews_enabled(db))


def get_or_create_settings(db: Session) -> SystemSettings:
    """Return the canonical settings row, creating it if absent.

    Two concurrent creators can both insert; the lowest id wins on every later
    read and the extra row is reported as a warning.
    """
    rows = _settings_rows(db)
    if not rows:
        settings = SystemSettings(reviews_enabled=True, updated_at=_utcnow())
        db.add(settings)
        db.flush()
        return settings
    if len(rows) > 1:
        record_event(
            db,
            EventKind.WARN,
            SETTINGS,
            "Duplicate system settings rows found",
            setting_ids=[row.id for row in rows],
        )
    return rows[0]


def set_reviews_enabled(db: Session, enabled: bool, actor_id: Any = None) -> SystemSettings:
    settings = get_or_create_settings(db)
    settings.reviews_enabled = bool(enabled)
    settings.updated_by = to_uuid(actor_id)
    settings.updated_at = _utcnow()
    db.flush()
    settings_cache.invalidate()
    return settings


def get_user(db: Session, user_id: Any) -> User | None:
    uid = to_uuid(user_id)
    if uid is None:
        return None
    return db.get(User, uid)


def written_count(db: Session, user_id: Any) -> int:
    return int(db.scalar(select(func.count(Review.id)).where(Review.reviewer_id == to_uuid(user_id))) or 0)


def reviewed_ids(db: Session, reviewer_id: Any) -> set[str]:
    rows = db.scalars(select(Review.reviewee_id).where(Review.reviewer_id == to_uuid(reviewer_id)))
    return {str(row) for row in rows}


def _find_review(db: Session, reviewer_id: Any, reviewee_id: Any) -> Review | None:
    stmt = select(Review).where(Review.reviewer_id == reviewer_id, Review.reviewee_id == reviewee_id)
    return db.scalars(stmt).first()


def _upsert_review(db: Session, reviewer_id: Any, reviewee_id: Any, fields: dict[str, Any]) -> tuple[Review, bool]:
    now = _utcnow()
    existing = _find_review(db, reviewer_id, reviewee_id)
    if existing is None:
        try:
            with db.begin_nested():
                review = Review(reviewer_id=reviewer_id, reviewee_id=reviewee_id, created_at=now, updated_at=now, **fields)
                db.add(review)
            return review, True
        except IntegrityError:
            # Lost an insert race on (reviewer_id, reviewee_id); update the winner's row.
            existing = db.scalars(
                select(Review).where(Review.reviewer_id == reviewer_id, Review.reviewee_id == reviewee_id)
            ).one()

    for name, value in fields.items():
        setattr(existing, name, value)
    existing.updated_at = now
    db.flush()
    return existing, False


def _submit_review(db: Session, reviewer_id: Any, reviewee_id: Any, ratings: dict[str, Any], texts: dict[str, Any]) -> Outcome:
    reviewer = get_user(db, reviewer_id)
    if reviewer is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, "Reviewer not found.")
    if reviewer.has_submitted:
        return Outcome.denied(DenyReason.ALREADY_FINALIZED)

    enabled = cached_reviews_enabled(db)
    if not enabled:
        return Outcome.denied(DenyReason.REVIEWS_DISABLED)

    reviewee = get_user(db, reviewee_id)
    if reviewee is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, "Reviewee not found.")
    if reviewee.id == reviewer.id:
        return Outcome.failure(ErrorKind.VALIDATION, "You cannot review yourself.", reviewee_id="Choose another student.")

    decision = can_review(reviewer, reviewee, {"reviews_enabled": enabled})
    if not decision:
        return Outcome.denied(decision.reason)

    fields, errors = validate_review(ratings, texts)
    if errors:
        return Outcome(False, ErrorKind.VALIDATION, None, "Please fix the highlighted fields.", errors)

    review, created = _upsert_review(db, reviewer.id, reviewee.id, fields)
    record_event(
        db,
        EventKind.USER_ACTION,
        REVIEW,
        "Review created" if created else "Review updated",
        reviewer.id,
        reviewee_id=reviewee.id,
    )
    return Outcome.success("Review saved.", review_id=str(review.id), created=created)


def submit_review(db: Session, reviewer_id: Any, reviewee_id: Any, ratings: dict[str, Any], texts: dict[str, Any]) -> Outcome:
    return guarded(db, REVIEW, lambda: _submit_review(db, reviewer_id, reviewee_id, ratings, texts), reviewer_id)


def _finalize_submission(db: Session, user_id: Any) -> Outcome:
    user = get_user(db, user_id)
    if user is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, "User not found.")
    if user.has_submitted:
        return Outcome.success("Your reviews were already submitted.", already_finalized=True, submitted_at=user.submitted_at)

    # Fresh read: the kill-switch must not be served stale at the finality step.
    if not is_reviews_enabled(db):
        return Outcome.denied(DenyReason.REVIEWS_DISABLED)

    count = written_count(db, user.id)
    if count < MIN_REVIEWS_TO_FINALIZE:
        outcome = Outcome.denied(DenyReason.INSUFFICIENT_REVIEWS)
        outcome.message = f"{outcome.message} You have written {count}."
        outcome.data = {"review_count": count, "required": MIN_REVIEWS_TO_FINALIZE}
        return outcome

    # Two concurrent finalize calls may both get here; both write the same terminal state.
    user.has_submitted = True
    user.submitted_at = _utcnow()
    db.flush()
    record_event(db, EventKind.USER_ACTION, SUBMISSION, "Reviews finalized", user.id, review_count=count)
    return Outcome.success(
        "Your reviews have been submitted.",
        already_finalized=False,
        submitted_at=user.submitted_at,
        review_count=count,
    )


def finalize_submission(db: Session, user_id: Any) -> Outcome:
    return guarded(db, SUBMISSION, lambda: _finalize_submission(db, user_id), user_id)


def submission_status(db: Session, user_id: Any) -> dict[str, Any] | None:
    user = get_user(db, user_id)
    if user is None:
        return None
    count = written_count(db, user.id)
    enabled = cached_reviews_enabled(db)
    return {
        "state": "finalized" if user.has_submitted else "drafting",
        "review_count": count,
        "required": MIN_REVIEWS_TO_FINALIZE,
        "reviews_enabled": enabled,
        "can_finalize": not user.has_submitted and enabled and count >= MIN_REVIEWS_TO_FINALIZE,
        "submitted_at": user.submitted_at,
    }


def review_to_dict(review: Review) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": str(review.id),
        "reviewer_id": str(review.reviewer_id),
        "reviewee_id": str(review.reviewee_id),
        "average": review_average(review),
        "created_at": review.created_at,
        "updated_at": review.updated_at,
    }
    for name in RATING_FIELDS + TEXT_FIELDS:
        payload[name] = getattr(review, name)
    return payload


def get_review(db: Session, reviewer_id: Any, reviewee_id: Any) -> dict[str, Any] | None:
    review = _find_review(db, to_uuid(reviewer_id), to_uuid(reviewee_id))
    return review_to_dict(review) if review else None


def list_my_reviews(db: Session, user_id: Any) -> list[dict[str, Any]]:
    stmt = (
        select(Review, User)
        .join(User, User.id == Review.reviewee_id)
        .where(Review.reviewer_id == to_uuid(user_id))
        .order_by(Review.updated_at.desc(), User.name)
    )
    rows = []
    for review, reviewee in db.execute(stmt):
        payload = review_to_dict(review)
        payload.update({"reviewee_name": reviewee.name, "reviewee_department": reviewee.department})
        rows.append(payload)
    return rows


def _candidate_filters(reviewer: User) -> list[Any]:
    filters = [
        User.id != reviewer.id,
        User.is_admin.is_(False),
        User.is_dept_head.is_(False),
        User.accepting_reviews.is_(True),
    ]
    if reviewer.program == Program.DAMP.value:
        filters += [User.program == Program.DAMP.value, User.department == reviewer.department]
    else:
        filters.append(User.program == reviewer.program)
    return filters


def _recommend_for(db: Session, user_id: Any, skip: int, take: int) -> Outcome:
    reviewer = get_user(db, user_id)
    if reviewer is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, "User not found.")
    pool = db.scalars(select(User).where(*_candidate_filters(reviewer)).order_by(User.name)).all()
    page = recommend(reviewer, pool, skip, take, reviewed_ids(db, reviewer.id))
    record_event(
        db,
        EventKind.INFO,
        RECOMMENDATIONS,
        "Recommendations served",
        reviewer.id,
        skip=page["skip"],
        take=page["take"],
        returned=len(page["items"]),
    )
    return Outcome.success("OK", **page)


def recommend_for(db: Session, user_id: Any, skip: int = 0, take: int = 20) -> Outcome:
    return guarded(db, RECOMMENDATIONS, lambda: _recommend_for(db, user_id, skip, take), user_id)


def _search_candidates(db: Session, user_id: Any, query: str, skip: int, take: int) -> Outcome:
    reviewer = get_user(db, user_id)
    if reviewer is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, "User not found.")
    skip, take = clamp_page(skip, take, default_take=50)
    term = (query or "").strip()

    stmt = select(User).where(*_candidate_filters(reviewer))
    if term:
        stmt = stmt.where(or_(User.name.icontains(term, autoescape=True), User.department.icontains(term, autoescape=True)))
    rows = db.scalars(stmt.order_by(User.name).offset(skip).limit(take + 1)).all()

    reviewed = reviewed_ids(db, reviewer.id)
    items = [candidate_summary(row, str(row.id) in reviewed) for row in rows[:take]]
    record_event(db, EventKind.INFO, SEARCH, "Candidate search", reviewer.id, query=term, returned=len(items))
    return Outcome.success("OK", items=items, has_more=len(rows) > take, skip=skip, take=take)


def search_candidates(db: Session, user_id: Any, query: str = "", skip: int = 0, take: int = 50) -> Outcome:
    return guarded(db, SEARCH, lambda: _search_candidates(db, user_id, query, skip, take), user_id)
