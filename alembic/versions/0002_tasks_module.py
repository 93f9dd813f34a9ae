"""create tasks module tables

Revision ID: 0002_tasks_module
Revises: 0001_auth_users
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_tasks_module"
down_revision = "0001_auth_users"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        "IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = 'tasks') EXEC('CREATE SCHEMA tasks')"
    )

    op.create_table(
        "tasks",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("OwnerUserId", sa.Integer(), nullable=False),
        sa.Column("Title", sa.Unicode(length=200), nullable=False),
        sa.Column("Description", sa.Text()),
        sa.Column("Notes", sa.Text()),
        sa.Column("Category", sa.Unicode(length=80)),
        sa.Column("Priority", sa.String(length=10), nullable=False, server_default="MEDIUM"),
        sa.Column("Tags", sa.Unicode(length=500)),
        sa.Column("DueDate", sa.Date()),
        sa.Column("DueTime", sa.String(length=5)),
        sa.Column("TimeZone", sa.String(length=64)),
        sa.Column("StartTime", sa.DateTime(timezone=True)),
        sa.Column("EndTime", sa.DateTime(timezone=True)),
        sa.Column("NotifyOnStart", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("Status", sa.String(length=10), nullable=False, server_default="PENDING"),
        sa.Column("CompletedAt", sa.DateTime(timezone=True)),
        sa.Column("OverdueAt", sa.DateTime(timezone=True)),
        sa.Column("LockedAfterDue", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("NotificationsMuted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("SnoozedUntil", sa.DateTime(timezone=True)),
        sa.Column("PartiallyResolved", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("DuplicatedFromTaskId", sa.Integer()),
        sa.Column("SortOrder", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("Version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("SYSUTCDATETIME()"),
        ),
        sa.Column(
            "UpdatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("SYSUTCDATETIME()"),
        ),
        sa.CheckConstraint(
            "Status IN ('PENDING', 'OVERDUE', 'COMPLETED')",
            name="ck_tasks_tasks_status",
        ),
        schema="tasks",
    )
    op.create_index("ix_tasks_tasks_owner_user_id", "tasks", ["OwnerUserId"], schema="tasks")
    op.create_index("ix_tasks_owner_status", "tasks", ["OwnerUserId", "Status"], schema="tasks")
    op.create_index("ix_tasks_due_status", "tasks", ["DueDate", "Status"], schema="tasks")
    op.create_index("ix_tasks_duplicated_from", "tasks", ["DuplicatedFromTaskId"], schema="tasks")

    op.create_table(
        "subtasks",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("TaskId", sa.Integer(), nullable=False),
        sa.Column("Title", sa.Unicode(length=200), nullable=False),
        sa.Column("IsCompleted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("SortOrder", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "CreatedAt",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("SYSUTCDATETIME()"),
        ),
        sa.ForeignKeyConstraint(
            ["TaskId"],
            ["tasks.tasks.Id"],
            name="fk_tasks_subtasks_task",
            ondelete="CASCADE",
        ),
        schema="tasks",
    )
    op.create_index("ix_tasks_subtasks_task_id", "subtasks", ["TaskId"], schema="tasks")


def downgrade() -> None:
    op.drop_index("ix_tasks_subtasks_task_id", table_name="subtasks", schema="tasks")
    op.drop_table("subtasks", schema="tasks")
    op.drop_index("ix_tasks_duplicated_from", table_name="tasks", schema="tasks")
    op.drop_index("ix_tasks_due_status", table_name="tasks", schema="tasks")
    op.drop_index("ix_tasks_owner_status", table_name="tasks", schema="tasks")
    op.drop_index("ix_tasks_tasks_owner_user_id", table_name="tasks", schema="tasks")
    op.drop_table("tasks", schema="tasks")
