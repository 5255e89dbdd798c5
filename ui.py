from __future__ import annotations

from html import escape
from typing import Any

import pandas as pd
import streamlit as st

from export import FIELD_LABELS
from logic import ErrorKind, Outcome
from models import RATING_FIELDS


def inject_css() -> None:
    st.markdown(
        """
        <style>
            :root {
                --primary-blue: #0D47A1;
                --primary-orange: #FF7A00;
                --text-main: #1b2f4b;
                --text-muted: #4d6581;
                --surface: #ffffff;
                --border: #d1def1;
            }
            [data-testid="stAppViewContainer"] {
                background: linear-gradient(180deg, #ffffff 0%, #f4f8ff 100%);
                color: var(--text-main);
            }
            [data-testid="stSidebar"] {
                background: linear-gradient(180deg, #1e40af, var(--primary-blue));
            }
            [data-testid="stSidebar"] * {
                color: #eaf3ff !important;
            }
            .smp-card {
                background: var(--surface);
                border: 1px solid var(--border);
                border-radius: 14px;
                padding: 0.9rem 1rem;
                margin-bottom: 0.6rem;
            }
            .smp-card-name {
                font-weight: 700;
                font-size: 1.05rem;
            }
            .smp-card-meta {
                color: var(--text-muted);
                font-size: 0.9rem;
            }
            .smp-chip {
                display: inline-block;
                border-radius: 999px;
                padding: 0.1rem 0.6rem;
                margin: 0.3rem 0.3rem 0 0;
                background: #eef4ff;
                border: 1px solid var(--border);
                font-size: 0.8rem;
            }
            .smp-chip.done {
                background: #e7f8ee;
                border-color: #9ad9b4;
            }
            .smp-meter-head {
                display: flex;
                justify-content: space-between;
                font-size: 0.9rem;
            }
            .smp-meter-track {
                background: #e3ebf7;
                border-radius: 999px;
                height: 10px;
                overflow: hidden;
            }
            .smp-meter-fill {
                background: linear-gradient(90deg, var(--primary-blue), var(--primary-orange));
                height: 100%;
            }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_meter(label: str, pct: float, value_text: str | None = None) -> None:
    pct = max(0.0, min(1.0, pct))
    pct_text = value_text or f"{int(round(pct * 100))}%"
    st.markdown(
        f"""
        <div class="smp-meter">
            <div class="smp-meter-head">
                <span>{escape(label)}</span>
                <span>{escape(pct_text)}</span>
            </div>
            <div class="smp-meter-track">
                <div class="smp-meter-fill" style="width: {pct * 100:.1f}%;"></div>
            </div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def render_submission_progress(status: dict[str, Any]) -> None:
    count = status["review_count"]
    required = status["required"]
    if status["state"] == "finalized":
        render_meter("Reviews submitted", 1.0, "Finalized")
        return
    render_meter("Reviews written", count / max(1, required), f"{count}/{required} to finalize")


def render_outcome(outcome: Outcome) -> None:
    if outcome.ok:
        st.success(outcome.message)
    elif outcome.error is ErrorKind.DENIED:
        st.warning(outcome.message)
    elif outcome.error is ErrorKind.VALIDATION:
        st.error(outcome.message)
        for field, problem in outcome.field_errors.items():
            st.caption(f"{FIELD_LABELS.get(field, field)}: {problem}")
    else:
        st.error(outcome.message)


def render_candidate_card(candidate: dict[str, Any], key_prefix: str) -> bool:
    """Draw one peer card; returns True when its review button is clicked."""
    meta = " | ".join(
        escape(str(part))
        for part in (candidate.get("department"), f"Year {candidate.get('year')}", candidate.get("hostel"))
        if part
    )
    chips = []
    if candidate.get("match_tag"):
        chips.append(f"<span class='smp-chip'>{escape(candidate['match_tag'])}</span>")
    if candidate.get("has_reviewed"):
        chips.append("<span class='smp-chip done'>Reviewed</span>")
    st.markdown(
        f"""
        <div class="smp-card">
            <div class="smp-card-name">{escape(candidate.get('name') or '')}</div>
            <div class="smp-card-meta">{meta}</div>
            {''.join(chips)}
        </div>
        """,
        unsafe_allow_html=True,
    )
    label = "Edit review" if candidate.get("has_reviewed") else "Write review"
    return st.button(label, key=f"{key_prefix}_{candidate['id']}")


def distribution_frame(distribution: dict[str, dict[str, Any]]) -> pd.DataFrame:
    rows = []
    for name in RATING_FIELDS:
        stats = distribution.get(name, {})
        counts = stats.get("counts", {})
        row = {"Field": FIELD_LABELS[name]}
        row.update({str(value): counts.get(value, 0) for value in range(1, 6)})
        row["Mean"] = stats.get("mean")
        rows.append(row)
    return pd.DataFrame(rows)
