"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RATING_FIELDS = (
    "approachability",
    "academic_inclination",
    "work_ethics",
    "maturity",
    "open_mindedness",
    "academic_ethics",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("year", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("hostel", sa.String(length=120), nullable=True),
        sa.Column("pors", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"),
        sa.Column("program", sa.String(length=20), nullable=False, server_default="ismp"),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_dept_head", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("accepting_reviews", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("has_submitted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.CheckConstraint("year >= 1", name="ck_users_year"),
        sa.CheckConstraint("program in ('ismp', 'damp')", name="ck_users_program"),
        sa.CheckConstraint(
            "(has_submitted AND submitted_at IS NOT NULL) OR (NOT has_submitted AND submitted_at IS NULL)",
            name="ck_users_submitted_at",
        ),
    )
    op.create_index("ix_users_department", "users", ["department"], unique=False)
    op.create_index("ix_users_program", "users", ["program"], unique=False)

    op.create_table(
        "reviews",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reviewer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reviewee_id", postgresql.UUID(as_uuid=True), nullable=False),
        *[sa.Column(field, sa.Integer(), nullable=False) for field in RATING_FIELDS],
        sa.Column("substance_abuse", sa.Text(), nullable=False),
        sa.Column("ismp_mentor", sa.Text(), nullable=False),
        sa.Column("other_comments", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["reviewer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["reviewee_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reviewer_id", "reviewee_id", name="uq_reviews_reviewer_reviewee"),
        sa.CheckConstraint("reviewer_id <> reviewee_id", name="ck_reviews_not_self"),
        *[sa.CheckConstraint(f"{field} BETWEEN 1 AND 5", name=f"ck_reviews_{field}") for field in RATING_FIELDS],
    )
    op.create_index("ix_reviews_reviewer_id", "reviews", ["reviewer_id"], unique=False)
    op.create_index("ix_reviews_reviewee_id", "reviews", ["reviewee_id"], unique=False)

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("reviews_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("updated_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["updated_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("details_json", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("kind in ('info', 'warn', 'error', 'user_action')", name="ck_audit_logs_kind"),
    )
    op.create_index("ix_audit_logs_kind", "audit_logs", ["kind"], unique=False)
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_logs_kind", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("system_settings")
    op.drop_index("ix_reviews_reviewee_id", table_name="reviews")
    op.drop_index("ix_reviews_reviewer_id", table_name="reviews")
    op.drop_table("reviews")
    op.drop_index("ix_users_program", table_name="users")
    op.drop_index("ix_users_department", table_name="users")
    op.drop_table("users")
