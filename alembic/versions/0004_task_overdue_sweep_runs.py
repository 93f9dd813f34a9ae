"""create task overdue sweep run history

Revision ID: 0004_task_overdue_sweep_runs
Revises: 0003_notifications_module
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0004_task_overdue_sweep_runs"
down_revision = "0003_notifications_module"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "overdue_sweep_runs",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("RanAt", sa.DateTime(timezone=True), nullable=False),
        sa.Column("Result", sa.String(length=20), nullable=False),
        sa.Column("TasksUpdated", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("ErrorMessage", sa.String(length=500)),
        sa.Column("TriggeredBy", sa.String(length=40)),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("SYSUTCDATETIME()"),
        ),
        schema="tasks",
    )
    op.create_index(
        "ix_tasks_overdue_sweep_runs_ran_at",
        "overdue_sweep_runs",
        ["RanAt"],
        schema="tasks",
    )


def downgrade() -> None:
    op.drop_index("ix_tasks_overdue_sweep_runs_ran_at", table_name="overdue_sweep_runs", schema="tasks")
    op.drop_table("overdue_sweep_runs", schema="tasks")
