from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, aliased

from audit import ADMIN, EventKind, guarded, record_event
from logic import ErrorKind, Outcome, Program, clamp_page, field_of, rating_distribution, review_average
from models import AuditLog, Review, User
from reviews import get_user, review_to_dict, set_reviews_enabled


class Role(str, Enum):
    ADMIN = "admin"
    DEPT_HEAD = "dept_head"
    MEMBER = "member"


class AdminAction(str, Enum):
    LIST_USERS = "list_users"
    VIEW_USER_DETAIL = "view_user_detail"
    TOGGLE_GLOBAL_REVIEWS = "toggle_global_reviews"
    TOGGLE_USER_REVIEWS = "toggle_user_reviews"
    VIEW_LOGS = "view_logs"


CAPABILITIES: Mapping[Role, frozenset[AdminAction]] = MappingProxyType(
    {
        Role.ADMIN: frozenset(AdminAction),
        Role.DEPT_HEAD: frozenset(
            {AdminAction.LIST_USERS, AdminAction.VIEW_USER_DETAIL, AdminAction.TOGGLE_USER_REVIEWS}
        ),
        Role.MEMBER: frozenset(),
    }
)

FORBIDDEN_MESSAGE = "You do not have access to this action."


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role
    department: str

    @classmethod
    def from_user(cls, user: Any) -> "Actor":
        return cls(str(field_of(user, "id")), role_of(user), str(field_of(user, "department") or ""))


def role_of(user: Any) -> Role:
    if field_of(user, "is_admin", False):
        return Role.ADMIN
    if field_of(user, "is_dept_head", False):
        return Role.DEPT_HEAD
    return Role.MEMBER


def permitted_actions(user: Any) -> frozenset[AdminAction]:
    return CAPABILITIES[role_of(user)]


def in_scope(actor: Actor, target: Any) -> bool:
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.DEPT_HEAD:
        return field_of(target, "program") == Program.DAMP.value and field_of(target, "department") == actor.department
    return False


def authorize(actor: Actor | None, action: AdminAction, target: Any = None) -> bool:
    """Single capability check used by every admin operation."""
    if actor is None or action not in CAPABILITIES[actor.role]:
        return False
    if target is None:
        return True
    return in_scope(actor, target)


def _forbidden() -> Outcome:
    return Outcome.failure(ErrorKind.FORBIDDEN, FORBIDDEN_MESSAGE)


def _load_actor(db: Session, actor_id: Any) -> Actor | None:
    user = get_user(db, actor_id)
    return Actor.from_user(user) if user else None


def user_summary(user: User) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "department": user.department,
        "year": user.year,
        "hostel": user.hostel,
        "pors": list(user.pors or []),
        "program": user.program,
        "is_dept_head": user.is_dept_head,
        "accepting_reviews": user.accepting_reviews,
        "has_submitted": user.has_submitted,
        "submitted_at": user.submitted_at,
    }


def _list_users_with_counts(
    db: Session, actor_id: Any, search: str, department: str, skip: int, take: int
) -> Outcome:
    actor = _load_actor(db, actor_id)
    if not authorize(actor, AdminAction.LIST_USERS):
        return _forbidden()
    skip, take = clamp_page(skip, take, default_take=50)

    written = aliased(Review)
    received = aliased(Review)
    written_count = (
        select(func.count(written.id)).where(written.reviewer_id == User.id).correlate(User).scalar_subquery()
    )
    received_count = (
        select(func.count(received.id)).where(received.reviewee_id == User.id).correlate(User).scalar_subquery()
    )

    stmt = select(User, written_count, received_count).where(User.is_admin.is_(False))
    if actor.role is Role.DEPT_HEAD:
        stmt = stmt.where(User.program == Program.DAMP.value, User.department == actor.department)
    term = (search or "").strip()
    if term:
        stmt = stmt.where(or_(User.name.icontains(term, autoescape=True), User.email.icontains(term, autoescape=True)))
    if department:
        stmt = stmt.where(User.department == department)
    rows = db.execute(stmt.order_by(User.name, User.email).offset(skip).limit(take + 1)).all()

    items = []
    for user, written_total, received_total in rows[:take]:
        summary = user_summary(user)
        summary.update({"reviews_written": int(written_total or 0), "reviews_received": int(received_total or 0)})
        items.append(summary)

    record_event(
        db,
        EventKind.USER_ACTION,
        ADMIN,
        "Admin user search",
        actor.id,
        search=term,
        department=department or "",
        skip=skip,
    )
    return Outcome.success("OK", items=items, has_more=len(rows) > take, skip=skip, take=take)


def list_users_with_counts(
    db: Session,
    actor_id: Any,
    search: str = "",
    department: str = "",
    skip: int = 0,
    take: int = 50,
) -> Outcome:
    return guarded(db, ADMIN, lambda: _list_users_with_counts(db, actor_id, search, department, skip, take), actor_id)


def _reviews_with_names(db: Session, column: Any, user_id: Any, other_column: Any) -> list[dict[str, Any]]:
    stmt = (
        select(Review, User.name)
        .join(User, User.id == other_column)
        .where(column == user_id)
        .order_by(Review.updated_at.desc(), User.name)
    )
    rows = []
    for review, other_name in db.execute(stmt):
        payload = review_to_dict(review)
        payload["other_name"] = other_name
        rows.append(payload)
    return rows


def _get_user_detail(db: Session, actor_id: Any, user_id: Any) -> Outcome:
    actor = _load_actor(db, actor_id)
    if not authorize(actor, AdminAction.VIEW_USER_DETAIL):
        return _forbidden()
    user = get_user(db, user_id)
    if user is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, "User not found.")
    if not authorize(actor, AdminAction.VIEW_USER_DETAIL, user):
        return _forbidden()

    written = _reviews_with_names(db, Review.reviewer_id, user.id, Review.reviewee_id)
    received = _reviews_with_names(db, Review.reviewee_id, user.id, Review.reviewer_id)
    averages = [review_average(review) for review in received]
    return Outcome.success(
        "OK",
        user=user_summary(user),
        reviews_written=written,
        reviews_received=received,
        distribution=rating_distribution(received),
        overall_average=round(sum(averages) / len(averages), 2) if averages else None,
    )


def get_user_detail(db: Session, actor_id: Any, user_id: Any) -> Outcome:
    return guarded(db, ADMIN, lambda: _get_user_detail(db, actor_id, user_id), actor_id)


def _toggle_global_reviews(db: Session, actor_id: Any, enabled: bool) -> Outcome:
    actor = _load_actor(db, actor_id)
    if not authorize(actor, AdminAction.TOGGLE_GLOBAL_REVIEWS):
        return _forbidden()
    settings = set_reviews_enabled(db, enabled, actor.id)
    record_event(
        db,
        EventKind.USER_ACTION,
        ADMIN,
        "Reviews enabled" if settings.reviews_enabled else "Reviews disabled",
        actor.id,
        reviews_enabled=settings.reviews_enabled,
    )
    return Outcome.success("Settings updated.", reviews_enabled=settings.reviews_enabled)


def toggle_global_reviews(db: Session, actor_id: Any, enabled: bool) -> Outcome:
    return guarded(db, ADMIN, lambda: _toggle_global_reviews(db, actor_id, enabled), actor_id)


def _toggle_user_accepting_reviews(db: Session, actor_id: Any, user_id: Any, enabled: bool) -> Outcome:
    actor = _load_actor(db, actor_id)
    if not authorize(actor, AdminAction.TOGGLE_USER_REVIEWS):
        return _forbidden()
    user = get_user(db, user_id)
    if user is None:
        return Outcome.failure(ErrorKind.NOT_FOUND, "User not found.")
    if not authorize(actor, AdminAction.TOGGLE_USER_REVIEWS, user):
        return Outcome.failure(ErrorKind.FORBIDDEN, "You can only modify DAMP users from your department.")

    user.accepting_reviews = bool(enabled)
    db.flush()
    record_event(
        db,
        EventKind.USER_ACTION,
        ADMIN,
        "User review intake changed",
        actor.id,
        target_id=user.id,
        accepting_reviews=user.accepting_reviews,
    )
    return Outcome.success("User updated.", user_id=str(user.id), accepting_reviews=user.accepting_reviews)


def toggle_user_accepting_reviews(db: Session, actor_id: Any, user_id: Any, enabled: bool) -> Outcome:
    return guarded(db, ADMIN, lambda: _toggle_user_accepting_reviews(db, actor_id, user_id, enabled), actor_id)


def _recent_logs(db: Session, actor_id: Any, kind: str | None, limit: int) -> Outcome:
    actor = _load_actor(db, actor_id)
    if not authorize(actor, AdminAction.VIEW_LOGS):
        return _forbidden()
    limit = max(1, min(int(limit or 100), 500))
    stmt = select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
    if kind and kind != "all":
        stmt = stmt.where(AuditLog.kind == kind)
    items = [
        {
            "id": str(row.id),
            "kind": row.kind,
            "category": row.category,
            "message": row.message,
            "user_id": str(row.user_id) if row.user_id else None,
            "details": row.details_json or {},
            "created_at": row.created_at,
        }
        for row in db.scalars(stmt)
    ]
    return Outcome.success("OK", items=items)


def recent_logs(db: Session, actor_id: Any, kind: str | None = None, limit: int = 100) -> Outcome:
    return guarded(db, ADMIN, lambda: _recent_logs(db, actor_id, kind, limit), actor_id)


def list_departments(db: Session) -> list[str]:
    rows = db.scalars(select(User.department).where(User.department != "").distinct().order_by(User.department))
    return list(rows)
