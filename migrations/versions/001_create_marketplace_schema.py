"""Create users, admins, categories, jobs, requests and reviews tables.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _lockout_columns() -> list[sa.Column]:
    return [
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("login_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("lock_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("login_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("user_id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("firstname", sa.String(64), nullable=False),
        sa.Column("lastname", sa.String(64), nullable=False),
        sa.Column("name", sa.String(130), nullable=True),
        sa.Column("phone_number", sa.String(20), nullable=True, unique=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column(
            "user_type",
            sa.Enum("client", "artisan", name="usertype"),
            nullable=False,
            server_default="client",
        ),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verification_code", sa.String(6), nullable=True),
        sa.Column("rating", sa.Numeric(3, 2), nullable=False, server_default="0.00"),
        sa.Column("reviews", sa.Integer(), nullable=False, server_default="0"),
        *_lockout_columns(),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_on", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.Uuid(), nullable=True),
    )

    op.create_table(
        "admins",
        sa.Column("admin_id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("firstname", sa.String(64), nullable=False),
        sa.Column("lastname", sa.String(64), nullable=False),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("permissions", ARRAY(sa.String(64)), nullable=True),
        *_lockout_columns(),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "categories",
        sa.Column("category_id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False, unique=True),
        sa.Column("image_url", sa.String(2048), nullable=True),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.Uuid(), nullable=True),
    )

    op.create_table(
        "jobs",
        sa.Column("job_id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(256), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category_id", sa.Uuid(), sa.ForeignKey("categories.category_id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False),
        sa.Column("artisan_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "status",
            sa.Enum("NEW", "PENDING", "ASSIGNED", "COMPLETED", name="jobstatus"),
            nullable=False,
            server_default="NEW",
        ),
        sa.Column("budget", sa.Numeric(12, 2), nullable=True),
        sa.Column("duration", sa.DateTime(timezone=True), nullable=True),
        sa.Column("request_id", sa.Uuid(), nullable=True),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_on", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.Uuid(), nullable=True),
    )
    op.create_index("ix_jobs_user_id", "jobs", ["user_id"])
    # Startup sweep scans PENDING jobs by deadline
    op.create_index("ix_jobs_status_duration", "jobs", ["status", "duration"])

    op.create_table(
        "requests",
        sa.Column("request_id", sa.Uuid(), primary_key=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
        sa.Column("artisan_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "status",
            sa.Enum("NEW", "ACCEPTED", "DECLINED", "CANCELED", "TIMEOUT", name="requeststatus"),
            nullable=False,
            server_default="NEW",
        ),
        sa.Column("duration", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rejection_reason", sa.String(1024), nullable=True),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.Uuid(), nullable=True),
        sa.Column("updated_on", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.Uuid(), nullable=True),
    )
    op.create_index("ix_requests_job_id", "requests", ["job_id"])

    op.create_table(
        "reviews",
        sa.Column("review_id", sa.Uuid(), primary_key=True),
        sa.Column("job_id", sa.Uuid(), sa.ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False),
        sa.Column("artisan_id", sa.Uuid(), sa.ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("rating", sa.Numeric(2, 1), nullable=False),
        sa.Column("created_on", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating"),
        sa.UniqueConstraint("job_id", "user_id", name="uq_reviews_job_user"),
    )
    op.create_index("ix_reviews_artisan_id", "reviews", ["artisan_id"])


def downgrade() -> None:
    op.drop_table("reviews")
    op.drop_table("requests")
    op.drop_table("jobs")
    op.drop_table("categories")
    op.drop_table("admins")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS requeststatus")
    op.execute("DROP TYPE IF EXISTS jobstatus")
    op.execute("DROP TYPE IF EXISTS usertype")
