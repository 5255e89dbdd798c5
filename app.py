from __future__ import annotations

import logging
from typing import Any

import pandas as pd
import streamlit as st

from admin import (
    AdminAction,
    get_user_detail,
    list_departments,
    list_users_with_counts,
    permitted_actions,
    recent_logs,
    toggle_global_reviews,
    toggle_user_accepting_reviews,
)
from auth import authenticate_user, get_user_by_id
from db import db_session, init_schema
from export import FIELD_LABELS, build_json_summary, build_pdf_report
from logic import RATING_MAX, RATING_MIN
from models import RATING_FIELDS, TEXT_FIELDS
from reviews import (
    finalize_submission,
    get_review,
    is_reviews_enabled,
    list_my_reviews,
    recommend_for,
    search_candidates,
    submission_status,
    submit_review,
)
from seed import seed_default_admin, seed_users_if_empty
from ui import distribution_frame, inject_css, render_candidate_card, render_outcome, render_submission_progress


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="SMP Peer Review", layout="wide")

PAGE_SIZE = 10


@st.cache_resource
def bootstrap() -> None:
    init_schema()
    with db_session() as db:
        seed_default_admin(db)
        seed_users_if_empty(db)


def get_current_user() -> dict[str, Any] | None:
    auth_payload = st.session_state.get("auth_user")
    if not auth_payload:
        return None

    with db_session() as db:
        user = get_user_by_id(db, auth_payload["id"])
        if not user:
            st.session_state.pop("auth_user", None)
            return None
        return {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "is_admin": user.is_admin,
            "is_dept_head": user.is_dept_head,
            "actions": permitted_actions(user),
        }


def render_login() -> None:
    st.title("SMP Peer Review")
    st.caption("Log in with your institute email.")
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Log in")
    if not submitted:
        return
    with db_session() as db:
        user = authenticate_user(db, email, password)
        payload = {"id": str(user.id)} if user else None
    if not payload:
        st.error("Invalid email or password.")
        return
    st.session_state["auth_user"] = payload
    st.rerun()


def open_review(candidate_id: str) -> None:
    st.session_state["review_target"] = candidate_id
    st.session_state["page"] = "Write review"
    st.rerun()


def render_dashboard(user: dict[str, Any]) -> None:
    st.header(f"Welcome, {user['name']}")
    with db_session() as db:
        status = submission_status(db, user["id"])
        written = list_my_reviews(db, user["id"])

    render_submission_progress(status)
    if not status["reviews_enabled"]:
        st.info("Review submissions are currently disabled.")

    if written:
        frame = pd.DataFrame(
            [
                {"Reviewee": row["reviewee_name"], "Department": row["reviewee_department"], "Average": row["average"]}
                for row in written
            ]
        )
        st.dataframe(frame, use_container_width=True, hide_index=True)
    else:
        st.caption("You have not written any reviews yet.")

    if status["state"] == "finalized":
        st.success(f"Reviews finalized on {status['submitted_at']:%d %b %Y}.")
        return
    if st.button("Finalize my reviews", disabled=not status["can_finalize"]):
        with db_session() as db:
            outcome = finalize_submission(db, user["id"])
        if outcome.ok:
            st.rerun()
        render_outcome(outcome)


def render_finder(user: dict[str, Any]) -> None:
    st.header("Find peers")
    tab_suggested, tab_search = st.tabs(["Suggested", "Search"])

    with tab_suggested:
        page = st.session_state.get("suggest_page", 0)
        with db_session() as db:
            outcome = recommend_for(db, user["id"], skip=page * PAGE_SIZE, take=PAGE_SIZE)
        if not outcome.ok:
            render_outcome(outcome)
        else:
            if not outcome.data["items"]:
                st.caption("No suggestions yet. Try searching by name.")
            for candidate in outcome.data["items"]:
                if render_candidate_card(candidate, "suggest"):
                    open_review(candidate["id"])
            prev_col, next_col = st.columns(2)
            if prev_col.button("Previous", disabled=page == 0):
                st.session_state["suggest_page"] = page - 1
                st.rerun()
            if next_col.button("Next", disabled=not outcome.data["has_more"]):
                st.session_state["suggest_page"] = page + 1
                st.rerun()

    with tab_search:
        query = st.text_input("Name or department")
        with db_session() as db:
            outcome = search_candidates(db, user["id"], query)
        if not outcome.ok:
            render_outcome(outcome)
        else:
            for candidate in outcome.data["items"]:
                if render_candidate_card(candidate, "search"):
                    open_review(candidate["id"])
            if outcome.data["has_more"]:
                st.caption("Showing the first results; refine your search to see more.")


def render_review_form(user: dict[str, Any]) -> None:
    target_id = st.session_state.get("review_target")
    if not target_id:
        st.info("Pick someone from Find peers first.")
        return

    with db_session() as db:
        target = get_user_by_id(db, target_id)
        target_name = target.name if target else None
        existing = get_review(db, user["id"], target_id) or {}
    if not target_name:
        st.error("Reviewee not found.")
        return

    st.header(f"Review: {target_name}")
    with st.form("review"):
        ratings = {
            name: st.slider(FIELD_LABELS[name], RATING_MIN, RATING_MAX, int(existing.get(name, 3)))
            for name in RATING_FIELDS
        }
        texts = {name: st.text_area(FIELD_LABELS[name], value=existing.get(name, "")) for name in TEXT_FIELDS}
        submitted = st.form_submit_button("Save review")
    if submitted:
        with db_session() as db:
            outcome = submit_review(db, user["id"], target_id, ratings, texts)
        render_outcome(outcome)


def render_admin_users(user: dict[str, Any]) -> None:
    st.header("Users")
    actions = user["actions"]
    with db_session() as db:
        departments = list_departments(db)
        reviews_enabled = is_reviews_enabled(db)

    if AdminAction.TOGGLE_GLOBAL_REVIEWS in actions:
        enabled = st.toggle("Review submissions enabled", value=reviews_enabled)
        if enabled != reviews_enabled:
            with db_session() as db:
                render_outcome(toggle_global_reviews(db, user["id"], enabled))

    search_col, dept_col = st.columns([2, 1])
    search = search_col.text_input("Search name or email")
    department = dept_col.selectbox("Department", [""] + departments)
    page = st.session_state.get("admin_page", 0)
    with db_session() as db:
        outcome = list_users_with_counts(db, user["id"], search, department, skip=page * 50, take=50)
    if not outcome.ok:
        render_outcome(outcome)
        return

    items = outcome.data["items"]
    frame = pd.DataFrame(
        [
            {
                "Name": row["name"],
                "Email": row["email"],
                "Department": row["department"],
                "Program": row["program"].upper(),
                "Written": row["reviews_written"],
                "Received": row["reviews_received"],
                "Finalized": row["has_submitted"],
                "Accepting": row["accepting_reviews"],
            }
            for row in items
        ]
    )
    st.dataframe(frame, use_container_width=True, hide_index=True)
    prev_col, next_col = st.columns(2)
    if prev_col.button("Previous page", disabled=page == 0):
        st.session_state["admin_page"] = page - 1
        st.rerun()
    if next_col.button("Next page", disabled=not outcome.data["has_more"]):
        st.session_state["admin_page"] = page + 1
        st.rerun()

    if not items:
        return
    labels = {f"{row['name']} ({row['email']})": row for row in items}
    selected = labels[st.selectbox("Open user", list(labels))]
    render_admin_detail(user, selected)


def render_admin_detail(user: dict[str, Any], selected: dict[str, Any]) -> None:
    with db_session() as db:
        outcome = get_user_detail(db, user["id"], selected["id"])
    if not outcome.ok:
        render_outcome(outcome)
        return
    detail = outcome.data
    profile = detail["user"]

    st.subheader(profile["name"])
    st.caption(f"{profile['department']} | Year {profile['year']} | {profile['hostel'] or '-'} | {', '.join(profile['pors']) or '-'}")
    accepting = st.toggle("Accepting reviews", value=profile["accepting_reviews"], key=f"accepting_{profile['id']}")
    if accepting != profile["accepting_reviews"]:
        with db_session() as db:
            render_outcome(toggle_user_accepting_reviews(db, user["id"], profile["id"], accepting))

    st.metric("Overall average", detail["overall_average"] if detail["overall_average"] is not None else "-")
    st.dataframe(distribution_frame(detail["distribution"]), use_container_width=True, hide_index=True)
    with st.expander(f"Reviews received ({len(detail['reviews_received'])})"):
        for review in detail["reviews_received"]:
            st.markdown(f"**{review['other_name']}** (average {review['average']})")
            for name in TEXT_FIELDS:
                st.write(f"{FIELD_LABELS[name]}: {review[name]}")
    with st.expander(f"Reviews written ({len(detail['reviews_written'])})"):
        for review in detail["reviews_written"]:
            st.write(f"- {review['other_name']}: average {review['average']}")

    pdf_col, json_col = st.columns(2)
    pdf_col.download_button("Download PDF", build_pdf_report(detail), file_name=f"{profile['email']}.pdf")
    json_col.download_button("Download JSON", build_json_summary(detail), file_name=f"{profile['email']}.json")


def render_admin_logs(user: dict[str, Any]) -> None:
    st.header("Logs")
    kind = st.selectbox("Kind", ["all", "info", "warn", "error", "user_action"])
    with db_session() as db:
        outcome = recent_logs(db, user["id"], kind, limit=200)
    if not outcome.ok:
        render_outcome(outcome)
        return
    frame = pd.DataFrame(
        [
            {
                "When": row["created_at"],
                "Kind": row["kind"],
                "Category": row["category"],
                "Message": row["message"],
                "Details": build_json_summary(row["details"]).decode("utf-8"),
            }
            for row in outcome.data["items"]
        ]
    )
    st.dataframe(frame, use_container_width=True, hide_index=True)


def main() -> None:
    inject_css()
    bootstrap()

    user = get_current_user()
    if not user:
        render_login()
        return

    pages = ["Dashboard", "Find peers", "Write review"]
    if AdminAction.LIST_USERS in user["actions"]:
        pages.append("Admin: users")
    if AdminAction.VIEW_LOGS in user["actions"]:
        pages.append("Admin: logs")

    with st.sidebar:
        st.write(user["email"])
        current = st.session_state.get("page", "Dashboard")
        page = st.radio("Go to", pages, index=pages.index(current) if current in pages else 0)
        st.session_state["page"] = page
        if st.button("Log out"):
            st.session_state.clear()
            st.rerun()

    if page == "Dashboard":
        render_dashboard(user)
    elif page == "Find peers":
        render_finder(user)
    elif page == "Write review":
        render_review_form(user)
    elif page == "Admin: users":
        render_admin_users(user)
    elif page == "Admin: logs":
        render_admin_logs(user)


main()
