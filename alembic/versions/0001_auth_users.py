"""create auth schema, users, refresh tokens and preferences

Revision ID: 0001_auth_users
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_auth_users"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("SYSUTCDATETIME()"),
    )


def upgrade() -> None:
    op.execute(
        "IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = 'auth') EXEC('CREATE SCHEMA auth')"
    )

    op.create_table(
        "users",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("Email", sa.String(length=254), nullable=False),
        sa.Column("PasswordHash", sa.String(length=255), nullable=False),
        sa.Column("Name", sa.Unicode(length=120)),
        sa.Column("AvatarUrl", sa.String(length=400)),
        sa.Column("Location", sa.Unicode(length=120)),
        sa.Column("Bio", sa.Unicode(length=500)),
        sa.Column("FailedLoginCount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("LockedUntil", sa.DateTime(timezone=True)),
        _timestamp("CreatedAt"),
        _timestamp("UpdatedAt"),
        sa.UniqueConstraint("Email", name="ux_auth_users_email"),
        schema="auth",
    )
    op.create_index("ix_auth_users_email", "users", ["Email"], unique=True, schema="auth")

    op.create_table(
        "refresh_tokens",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("UserId", sa.Integer(), nullable=False),
        sa.Column("TokenHash", sa.String(length=255), nullable=False),
        _timestamp("CreatedAt"),
        sa.Column("ExpiresAt", sa.DateTime(timezone=True), nullable=False),
        sa.Column("RevokedAt", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["UserId"], ["auth.users.Id"], name="fk_auth_refresh_tokens_user"),
        schema="auth",
    )
    op.create_index("ix_auth_refresh_tokens_user", "refresh_tokens", ["UserId"], schema="auth")

    op.create_table(
        "user_preferences",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("UserId", sa.Integer(), nullable=False),
        sa.Column("NotificationsEnabled", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("DefaultView", sa.String(length=10), nullable=False, server_default="list"),
        sa.Column("Theme", sa.String(length=10), nullable=False, server_default="system"),
        sa.Column("TimeZone", sa.String(length=64)),
        _timestamp("CreatedAt"),
        _timestamp("UpdatedAt"),
        sa.ForeignKeyConstraint(["UserId"], ["auth.users.Id"], name="fk_auth_user_preferences_user"),
        schema="auth",
    )
    op.create_index(
        "ix_auth_user_preferences_user",
        "user_preferences",
        ["UserId"],
        unique=True,
        schema="auth",
    )


def downgrade() -> None:
    op.drop_index("ix_auth_user_preferences_user", table_name="user_preferences", schema="auth")
    op.drop_table("user_preferences", schema="auth")
    op.drop_index("ix_auth_refresh_tokens_user", table_name="refresh_tokens", schema="auth")
    op.drop_table("refresh_tokens", schema="auth")
    op.drop_index("ix_auth_users_email", table_name="users", schema="auth")
    op.drop_table("users", schema="auth")
