"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates the training bookings tables: training_sessions,
training_session_attendees, people, training_records,
attendance_mutations, notifications.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- training_sessions ---
    op.create_table(
        "training_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("company_id", sa.String(36), nullable=False, index=True),
        sa.Column("course_id", sa.String(36), nullable=False, index=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirm_deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("capacity", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PUBLISHED"),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("capacity > 0", name="check_session_capacity_positive"),
    )

    # --- training_session_attendees ---
    op.create_table(
        "training_session_attendees",
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("training_sessions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("user_id", sa.String(36), primary_key=True, index=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("source", sa.String(20), nullable=False, server_default="SELF"),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("booked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("attended_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- people ---
    op.create_table(
        "people",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(150), nullable=False),
        sa.Column("company_id", sa.String(36), nullable=False, index=True),
        sa.Column("home_id", sa.String(36), nullable=True, index=True),
    )

    # --- training_records ---
    op.create_table(
        "training_records",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("course_id", sa.String(36), primary_key=True),
        sa.Column("company_id", sa.String(36), nullable=False, index=True),
        sa.Column("next_due_date", sa.Date, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="UP_TO_DATE"),
    )

    # --- attendance_mutations ---
    op.create_table(
        "attendance_mutations",
        sa.Column("mutation_id", sa.String(36), primary_key=True),
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("training_sessions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("actor_user_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("before_status", sa.String(20), nullable=True),
        sa.Column("after_status", sa.String(20), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("notification_id", sa.String(36), primary_key=True),
        sa.Column("kind", sa.String(40), nullable=False),
        sa.Column("recipient_id", sa.String(36), nullable=False, index=True),
        sa.Column(
            "session_id",
            sa.String(36),
            sa.ForeignKey("training_sessions.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("link", sa.String(255), nullable=True),
        sa.Column("payload", sa.JSON, nullable=True),
        sa.Column("created_by", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("attendance_mutations")
    op.drop_table("training_records")
    op.drop_table("people")
    op.drop_table("training_session_attendees")
    op.drop_table("training_sessions")
