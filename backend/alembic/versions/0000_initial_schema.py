"""Create initial schema

Revision ID: 0000_initial_schema
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0000_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()

    if bind.dialect.name == "postgresql":
        user_role_enum = postgresql.ENUM("public", "student", "staff", "admin", name="userrole", create_type=False)
        user_role_enum.create(bind, checkfirst=True)
    else:
        user_role_enum = sa.Enum("public", "student", "staff", "admin", name="userrole")

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("academic_year", sa.String(length=50), nullable=True),
        sa.Column("community_service_hours", sa.Float(), server_default="0", nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_department", "users", ["department"])

    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.UniqueConstraint("name", name="uq_departments_name"),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("hours", sa.Float(), server_default="0", nullable=False),
        sa.Column("max_participants", sa.Integer(), server_default="0", nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("is_for_all_departments", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="Active", nullable=False),
        sa.Column("is_visible_to_students", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("requires_approval", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("is_public_registration_enabled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_events_date", "events", ["date"])
    op.create_index("ix_events_department", "events", ["department"])
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_created_at", "events", ["created_at"])

    op.create_table(
        "event_departments",
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), primary_key=True),
    )

    op.create_table(
        "attendance_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="Pending", nullable=False),
        sa.Column("registration_approved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("registered_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("time_in", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("time_out", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("reflection", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("approved_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("event_id", "user_id", name="uq_attendance_event_user"),
    )
    op.create_index("ix_attendance_entries_event_id", "attendance_entries", ["event_id"])
    op.create_index("ix_attendance_entries_user_id", "attendance_entries", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_attendance_entries_user_id", table_name="attendance_entries")
    op.drop_index("ix_attendance_entries_event_id", table_name="attendance_entries")
    op.drop_table("attendance_entries")
    op.drop_table("event_departments")
    op.drop_index("ix_events_created_at", table_name="events")
    op.drop_index("ix_events_status", table_name="events")
    op.drop_index("ix_events_department", table_name="events")
    op.drop_index("ix_events_date", table_name="events")
    op.drop_table("events")
    op.drop_table("departments")
    op.drop_index("ix_users_department", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        postgresql.ENUM(name="userrole").drop(bind, checkfirst=True)
