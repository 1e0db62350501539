"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Create enums with conditional check (Postgres doesn't support IF NOT EXISTS for TYPE)
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE reportfrequency AS ENUM ('daily', 'weekly', 'monthly');
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$;
    """)
    op.execute("""
        DO $$ BEGIN
            CREATE TYPE reportstatus AS ENUM ('pending', 'generating', 'success', 'failed');
        EXCEPTION WHEN duplicate_object THEN NULL;
        END $$;
    """)

    # Reference enums without auto-creating them
    report_frequency_enum = postgresql.ENUM(
        "daily", "weekly", "monthly", name="reportfrequency", create_type=False
    )
    report_status_enum = postgresql.ENUM(
        "pending", "generating", "success", "failed", name="reportstatus", create_type=False
    )

    op.create_table(
        "report_schedules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("report_type", sa.String(50), nullable=False),
        sa.Column("frequency", report_frequency_enum, nullable=False),
        sa.Column("recipients", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("next_run", sa.DateTime(), nullable=True),
        sa.Column("last_run", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_report_schedules_user_id", "report_schedules", ["user_id"])
    op.create_index("ix_report_schedules_entity_id", "report_schedules", ["entity_id"])
    op.create_index("ix_report_schedules_is_active", "report_schedules", ["is_active"])
    op.create_index("ix_report_schedules_next_run", "report_schedules", ["next_run"])

    op.create_table(
        "report_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("schedule_id", sa.Integer(), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("report_type", sa.String(50), nullable=False),
        sa.Column("status", report_status_enum, nullable=False),
        sa.Column("generated_at", sa.DateTime(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("recipient_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["schedule_id"], ["report_schedules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_report_history_schedule_id", "report_history", ["schedule_id"])
    op.create_index("ix_report_history_entity_id", "report_history", ["entity_id"])
    op.create_index("ix_report_history_status", "report_history", ["status"])

    op.create_table(
        "report_analytics",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("schedule_id", sa.Integer(), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("execution_time_ms", sa.Integer(), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["schedule_id"], ["report_schedules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_report_analytics_schedule_id", "report_analytics", ["schedule_id"])
    op.create_index("ix_report_analytics_timestamp", "report_analytics", ["timestamp"])


def downgrade() -> None:
    op.drop_table("report_analytics")
    op.drop_table("report_history")
    op.drop_table("report_schedules")

    # Drop enums
    op.execute("DROP TYPE IF EXISTS reportstatus")
    op.execute("DROP TYPE IF EXISTS reportfrequency")
