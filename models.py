from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


PROGRAMS = ("ismp", "damp")
RATING_FIELDS = (
    "approachability",
    "academic_inclination",
    "work_ethics",
    "maturity",
    "open_mindedness",
    "academic_ethics",
)
TEXT_FIELDS = ("substance_abuse", "ismp_mentor", "other_comments")

# Plain JSON everywhere else so the schema also builds on SQLite.
PorList = JSON().with_variant(ARRAY(Text), "postgresql")
DetailsJson = JSON().with_variant(JSONB, "postgresql")


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    year: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    hostel: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    pors: Mapped[list[str]] = mapped_column(PorList, nullable=False, default=list)
    program: Mapped[str] = mapped_column(String(20), nullable=False, default="ismp")  # ismp | damp
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_dept_head: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    accepting_reviews: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    has_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    reviews_written = relationship("Review", foreign_keys="Review.reviewer_id", back_populates="reviewer")
    reviews_received = relationship("Review", foreign_keys="Review.reviewee_id", back_populates="reviewee")

    __table_args__ = (
        CheckConstraint("year >= 1", name="ck_users_year"),
        CheckConstraint("program in ('ismp', 'damp')", name="ck_users_program"),
        CheckConstraint(
            "(has_submitted AND submitted_at IS NOT NULL) OR (NOT has_submitted AND submitted_at IS NULL)",
            name="ck_users_submitted_at",
        ),
        Index("ix_users_department", "department"),
        Index("ix_users_program", "program"),
    )


class Review(Base):
    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reviewer_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    reviewee_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    approachability: Mapped[int] = mapped_column(Integer, nullable=False)
    academic_inclination: Mapped[int] = mapped_column(Integer, nullable=False)
    work_ethics: Mapped[int] = mapped_column(Integer, nullable=False)
    maturity: Mapped[int] = mapped_column(Integer, nullable=False)
    open_mindedness: Mapped[int] = mapped_column(Integer, nullable=False)
    academic_ethics: Mapped[int] = mapped_column(Integer, nullable=False)
    substance_abuse: Mapped[str] = mapped_column(Text, nullable=False)
    ismp_mentor: Mapped[str] = mapped_column(Text, nullable=False)
    other_comments: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    reviewer = relationship("User", foreign_keys=[reviewer_id], back_populates="reviews_written")
    reviewee = relationship("User", foreign_keys=[reviewee_id], back_populates="reviews_received")

    __table_args__ = (
        UniqueConstraint("reviewer_id", "reviewee_id", name="uq_reviews_reviewer_reviewee"),
        CheckConstraint("reviewer_id <> reviewee_id", name="ck_reviews_not_self"),
        *(
            CheckConstraint(f"{field} BETWEEN 1 AND 5", name=f"ck_reviews_{field}")
            for field in RATING_FIELDS
        ),
        Index("ix_reviews_reviewer_id", "reviewer_id"),
        Index("ix_reviews_reviewee_id", "reviewee_id"),
    )


class SystemSettings(Base):
    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reviews_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # info | warn | error | user_action
    category: Mapped[str] = mapped_column(String(120), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    details_json: Mapped[dict] = mapped_column(DetailsJson, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("kind in ('info', 'warn', 'error', 'user_action')", name="ck_audit_logs_kind"),
        Index("ix_audit_logs_kind", "kind"),
        Index("ix_audit_logs_created_at", "created_at"),
    )
