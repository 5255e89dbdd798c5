from logic import (
    DenyReason,
    can_review,
    rating_distribution,
    recommend,
    score_match,
    validate_review,
)


def base_user(**overrides) -> dict:
    user = {
        "id": "me",
        "name": "Reviewer",
        "department": "CS",
        "year": 3,
        "hostel": "Hostel 5",
        "pors": ["WnCC"],
        "program": "ismp",
        "is_admin": False,
        "is_dept_head": False,
        "accepting_reviews": True,
        "has_submitted": False,
    }
    user.update(overrides)
    return user


def full_review(value: int = 4) -> tuple[dict, dict]:
    ratings = {
        "approachability": value,
        "academic_inclination": value,
        "work_ethics": value,
        "maturity": value,
        "open_mindedness": value,
        "academic_ethics": value,
    }
    texts = {"substance_abuse": "None", "ismp_mentor": "Yes", "other_comments": "Kind"}
    return ratings, texts


def test_can_review_allows_same_program() -> None:
    decision = can_review(base_user(), base_user(id="b", department="EE"), {"reviews_enabled": True})
    assert decision.allowed
    assert decision.reason is None


def test_can_review_checks_run_in_order() -> None:
    reviewer = base_user(has_submitted=True, program="damp")
    reviewee = base_user(id="b", accepting_reviews=False, program="ismp")

    assert can_review(reviewer, reviewee, {"reviews_enabled": False}).reason is DenyReason.REVIEWS_DISABLED
    assert can_review(reviewer, reviewee, {"reviews_enabled": True}).reason is DenyReason.REVIEWEE_NOT_ACCEPTING

    reviewee["accepting_reviews"] = True
    assert can_review(reviewer, reviewee).reason is DenyReason.CROSS_PROGRAM_DENIED

    reviewee["program"] = "damp"
    assert can_review(reviewer, reviewee).reason is DenyReason.ALREADY_FINALIZED


def test_can_review_damp_requires_same_department() -> None:
    reviewer = base_user(program="damp")
    assert can_review(reviewer, base_user(id="b", program="damp", department="EE")).reason is DenyReason.CROSS_DEPARTMENT_DENIED
    assert can_review(reviewer, base_user(id="c", program="damp")).allowed


def test_missing_settings_means_enabled() -> None:
    assert can_review(base_user(), base_user(id="b"), None).allowed


def test_deny_reasons_carry_messages() -> None:
    assert "not currently accepting" in DenyReason.REVIEWEE_NOT_ACCEPTING.message
    for reason in DenyReason:
        assert reason.message


def test_validate_review_accepts_digit_strings_and_trims_text() -> None:
    ratings, texts = full_review()
    ratings["maturity"] = "5"
    texts["other_comments"] = "  Kind  "
    cleaned, errors = validate_review(ratings, texts)
    assert errors == {}
    assert cleaned["maturity"] == 5
    assert cleaned["other_comments"] == "Kind"


def test_validate_review_rejects_out_of_range_bools_and_blank_text() -> None:
    ratings, texts = full_review()
    ratings["approachability"] = 6
    ratings["maturity"] = True
    del ratings["academic_ethics"]
    texts["ismp_mentor"] = "   "
    _, errors = validate_review(ratings, texts)
    assert set(errors) == {"approachability", "maturity", "academic_ethics", "ismp_mentor"}


def test_validate_review_rejects_malformed_rating_strings() -> None:
    for bad in ("--3", "²", "3.5", "three", ""):
        ratings, texts = full_review()
        ratings["work_ethics"] = bad
        _, errors = validate_review(ratings, texts)
        assert errors == {"work_ethics": "Rating must be a whole number."}


def test_score_match_same_department_only() -> None:
    reviewer = base_user(department="CS", hostel="Hostel 5", pors=["WnCC"])
    candidate = base_user(id="c", department="CS", hostel="Hostel 3", pors=[])
    detail = score_match(reviewer, candidate)
    assert detail.tag == "Same Dept"
    assert detail.score == 2
    assert detail.count == 1


def test_score_match_compound_bonus_and_por_tag() -> None:
    reviewer = base_user(pors=["WnCC", "SMP", "NSS"])
    candidate = base_user(id="c", pors=["WnCC", "SMP"])
    detail = score_match(reviewer, candidate)
    # dept 2 + hostel 3 + 2 PORs 4, three matches earn 9 bonus
    assert detail.score == 18
    assert detail.count == 3
    assert detail.tag == "Same Dept • Same Hostel • 2 Shared PORs"

    single = score_match(reviewer, base_user(id="d", department="EE", hostel=None, pors=["NSS"]))
    assert single.tag == "1 Shared POR"
    assert single.score == 2


def test_blank_department_or_hostel_never_matches() -> None:
    reviewer = base_user(department="", hostel=None, pors=[])
    candidate = base_user(id="c", department="", hostel=None, pors=[])
    assert score_match(reviewer, candidate).count == 0


def test_recommend_orders_by_count_score_then_name() -> None:
    reviewer = base_user(pors=["WnCC"])
    pool = [
        base_user(id="bob", name="Bob", hostel="Hostel 9", pors=["WnCC"]),
        base_user(id="alice", name="Alice", hostel="Hostel 9", pors=["WnCC"]),
        base_user(id="zed", name="Zed"),
        base_user(id="nomatch", name="Aaron", department="EE", hostel="Hostel 9", pors=[]),
    ]
    page = recommend(reviewer, pool, take=10)
    names = [item["name"] for item in page["items"]]
    assert names == ["Zed", "Alice", "Bob"]
    assert page["has_more"] is False


def test_recommend_prefilter_excludes_ineligible_candidates() -> None:
    reviewer = base_user()
    pool = [
        base_user(id="me", name="Self"),
        base_user(id="a", name="Admin", is_admin=True),
        base_user(id="h", name="Head", is_dept_head=True),
        base_user(id="x", name="Closed", accepting_reviews=False),
        base_user(id="d", name="Damp", program="damp"),
        base_user(id="ok", name="Okay"),
    ]
    page = recommend(reviewer, pool)
    assert [item["id"] for item in page["items"]] == ["ok"]


def test_recommend_pagination_and_reviewed_flag() -> None:
    reviewer = base_user()
    pool = [base_user(id=f"u{i}", name=f"User {i:02d}") for i in range(5)]
    first = recommend(reviewer, pool, skip=0, take=2, reviewed_ids=["u1"])
    assert [item["id"] for item in first["items"]] == ["u0", "u1"]
    assert first["has_more"] is True
    assert first["items"][1]["has_reviewed"] is True
    assert first["items"][0]["has_reviewed"] is False

    last = recommend(reviewer, pool, skip=4, take=2)
    assert [item["id"] for item in last["items"]] == ["u4"]
    assert last["has_more"] is False

    clamped = recommend(reviewer, pool, skip=-3, take=500)
    assert clamped["skip"] == 0
    assert clamped["take"] == 50


def test_recommend_item_shape() -> None:
    page = recommend(base_user(), [base_user(id="c", name="Cand", hostel="Hostel 1")])
    assert set(page["items"][0]) == {
        "id",
        "name",
        "department",
        "year",
        "hostel",
        "program",
        "match_tag",
        "match_score",
        "match_count",
        "has_reviewed",
    }


def test_rating_distribution_counts_and_means() -> None:
    reviews = [full_review(5)[0], full_review(3)[0], dict(full_review(3)[0], maturity=1)]
    distribution = rating_distribution(reviews)
    assert distribution["approachability"]["counts"] == {1: 0, 2: 0, 3: 2, 4: 0, 5: 1}
    assert distribution["approachability"]["mean"] == 3.67
    assert distribution["maturity"]["counts"][1] == 1
    assert rating_distribution([])["work_ethics"]["mean"] is None
