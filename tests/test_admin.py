from sqlalchemy import select

from admin import (
    Actor,
    AdminAction,
    Role,
    authorize,
    get_user_detail,
    list_users_with_counts,
    permitted_actions,
    recent_logs,
    toggle_global_reviews,
    toggle_user_accepting_reviews,
)
from conftest import ratings, texts
from logic import DenyReason, ErrorKind
from models import AuditLog
from reviews import cached_reviews_enabled, submit_review


def test_capability_policy_by_role() -> None:
    admin = Actor("a", Role.ADMIN, "Administration")
    head = Actor("h", Role.DEPT_HEAD, "Chemical Engineering")
    member = Actor("m", Role.MEMBER, "Chemical Engineering")
    own_damp = {"program": "damp", "department": "Chemical Engineering"}
    other_damp = {"program": "damp", "department": "Physics"}
    own_ismp = {"program": "ismp", "department": "Chemical Engineering"}

    assert all(authorize(admin, action, other_damp) for action in AdminAction)
    assert authorize(head, AdminAction.TOGGLE_USER_REVIEWS, own_damp)
    assert not authorize(head, AdminAction.TOGGLE_USER_REVIEWS, other_damp)
    assert not authorize(head, AdminAction.TOGGLE_USER_REVIEWS, own_ismp)
    assert not authorize(head, AdminAction.TOGGLE_GLOBAL_REVIEWS)
    assert not authorize(head, AdminAction.VIEW_LOGS)
    assert not any(authorize(member, action) for action in AdminAction)
    assert not authorize(None, AdminAction.LIST_USERS)


def test_permitted_actions_follow_role_flags() -> None:
    assert permitted_actions({"is_admin": True, "is_dept_head": True}) == frozenset(AdminAction)
    assert AdminAction.LIST_USERS in permitted_actions({"is_dept_head": True})
    assert permitted_actions({}) == frozenset()


def test_list_users_with_counts_for_admin(db, make_user) -> None:
    admin = make_user("Admin", is_admin=True)
    alice = make_user("Alice", email="alice@iitb.ac.in", department="Physics")
    bob = make_user("Bob", email="bob@iitb.ac.in")
    carol = make_user("Carol", email="carol@iitb.ac.in")
    submit_review(db, alice.id, bob.id, ratings(), texts())
    submit_review(db, carol.id, bob.id, ratings(), texts())

    outcome = list_users_with_counts(db, admin.id)
    assert outcome.ok
    rows = {row["name"]: row for row in outcome.data["items"]}
    assert list(rows) == ["Alice", "Bob", "Carol"]
    assert rows["Bob"]["reviews_received"] == 2
    assert rows["Alice"]["reviews_written"] == 1

    assert [r["name"] for r in list_users_with_counts(db, admin.id, search="BOB@").data["items"]] == ["Bob"]
    assert [r["name"] for r in list_users_with_counts(db, admin.id, department="Physics").data["items"]] == ["Alice"]

    first_page = list_users_with_counts(db, admin.id, take=2)
    assert len(first_page.data["items"]) == 2
    assert first_page.data["has_more"] is True
    assert list_users_with_counts(db, admin.id, skip=2, take=2).data["has_more"] is False


def test_dept_head_sees_only_own_damp_users(db, make_user) -> None:
    head = make_user("Head", is_dept_head=True, program="damp", department="Chemical Engineering")
    make_user("Riya", program="damp", department="Chemical Engineering")
    make_user("Ravi", program="ismp", department="Chemical Engineering")
    make_user("Rohit", program="damp", department="Physics")

    names = [row["name"] for row in list_users_with_counts(db, head.id).data["items"]]
    assert names == ["Head", "Riya"]


def test_member_cannot_use_admin_views(db, make_user) -> None:
    member = make_user("Member")
    other = make_user("Other")
    for outcome in [
        list_users_with_counts(db, member.id),
        get_user_detail(db, member.id, other.id),
        toggle_global_reviews(db, member.id, False),
        toggle_user_accepting_reviews(db, member.id, other.id, False),
        recent_logs(db, member.id),
    ]:
        assert outcome.error is ErrorKind.FORBIDDEN
        assert outcome.data == {}


def test_user_detail_recomputes_distribution(db, make_user) -> None:
    admin = make_user("Admin", is_admin=True)
    target = make_user("Target")
    first = make_user("First")
    second = make_user("Second")
    submit_review(db, first.id, target.id, ratings(5), texts())
    submit_review(db, second.id, target.id, ratings(2), texts())
    submit_review(db, target.id, first.id, ratings(3), texts())

    detail = get_user_detail(db, admin.id, target.id).data
    assert len(detail["reviews_received"]) == 2
    assert len(detail["reviews_written"]) == 1
    assert detail["distribution"]["maturity"]["counts"] == {1: 0, 2: 1, 3: 0, 4: 0, 5: 1}
    assert detail["distribution"]["maturity"]["mean"] == 3.5
    assert detail["overall_average"] == 3.5

    submit_review(db, second.id, target.id, ratings(5), texts())
    refreshed = get_user_detail(db, admin.id, target.id).data
    assert refreshed["distribution"]["maturity"]["mean"] == 5.0

    missing = get_user_detail(db, admin.id, "0c1d3a5e-0000-4000-8000-000000000000")
    assert missing.error is ErrorKind.NOT_FOUND


def test_dept_head_cannot_view_outside_scope(db, make_user) -> None:
    head = make_user("Head", is_dept_head=True, program="damp", department="Chemical Engineering")
    outsider = make_user("Outsider", program="ismp", department="Chemical Engineering")
    own = make_user("Own", program="damp", department="Chemical Engineering")

    assert get_user_detail(db, head.id, outsider.id).error is ErrorKind.FORBIDDEN
    assert get_user_detail(db, head.id, own.id).ok


def test_toggle_global_reviews_takes_effect_immediately(db, make_user) -> None:
    admin = make_user("Admin", is_admin=True)
    a = make_user("A")
    b = make_user("B")
    assert cached_reviews_enabled(db) is True

    outcome = toggle_global_reviews(db, admin.id, False)
    assert outcome.ok and outcome.data["reviews_enabled"] is False
    assert submit_review(db, a.id, b.id, ratings(), texts()).reason is DenyReason.REVIEWS_DISABLED

    assert toggle_global_reviews(db, admin.id, True).ok
    assert submit_review(db, a.id, b.id, ratings(), texts()).ok


def test_toggle_user_accepting_reviews_scope(db, make_user) -> None:
    head = make_user("Head", is_dept_head=True, program="damp", department="Chemical Engineering")
    own = make_user("Own", program="damp", department="Chemical Engineering")
    other = make_user("Other", program="damp", department="Physics")
    admin = make_user("Admin", is_admin=True)

    assert toggle_user_accepting_reviews(db, head.id, own.id, False).ok
    assert own.accepting_reviews is False

    denied = toggle_user_accepting_reviews(db, head.id, other.id, False)
    assert denied.error is ErrorKind.FORBIDDEN
    assert other.accepting_reviews is True

    assert toggle_user_accepting_reviews(db, admin.id, other.id, False).ok
    assert other.accepting_reviews is False


def test_recent_logs_filters_by_kind(db, make_user) -> None:
    admin = make_user("Admin", is_admin=True)
    toggle_global_reviews(db, admin.id, False)

    everything = recent_logs(db, admin.id)
    assert everything.ok
    assert any(item["category"] == "ADMIN" for item in everything.data["items"])

    only_warn = recent_logs(db, admin.id, kind="warn")
    assert only_warn.data["items"] == []
    assert db.scalars(select(AuditLog).where(AuditLog.kind == "user_action")).first() is not None
