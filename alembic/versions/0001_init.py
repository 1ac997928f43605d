"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    # enums
    membership_status_create = postgresql.ENUM("active", name="membership_status")
    request_status_create = postgresql.ENUM("pending", "approved", "rejected", "withdrawn", name="request_status")

    membership_status_create.create(op.get_bind(), checkfirst=True)
    request_status_create.create(op.get_bind(), checkfirst=True)

    membership_status = postgresql.ENUM("active", name="membership_status", create_type=False)
    request_status = postgresql.ENUM(
        "pending", "approved", "rejected", "withdrawn", name="request_status", create_type=False
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("github_url", sa.String(length=500), nullable=True),
        sa.Column("skills", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("owner_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("team_size", sa.Integer(), nullable=False),
        sa.Column("seats_taken", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("team_size >= 1", name="ck_projects_team_size_positive"),
        sa.CheckConstraint("seats_taken <= team_size", name="ck_projects_seats_within_team_size"),
    )
    op.create_index("ix_projects_owner_id", "projects", ["owner_id"])

    op.create_table(
        "memberships",
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("status", membership_status, nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("user_id", "project_id", name="uq_membership_user_project"),
    )
    op.create_index("ix_memberships_project_id", "memberships", ["project_id"])

    op.create_table(
        "project_requests",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.String(length=100), nullable=True),
        sa.Column("status", request_status, nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_project_requests_user_id", "project_requests", ["user_id"])
    op.create_index("ix_project_requests_project_id", "project_requests", ["project_id"])
    # at most one open request per (user, project)
    op.create_index(
        "uq_project_requests_pending",
        "project_requests",
        ["user_id", "project_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("project_id", sa.Uuid(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_messages_project_created_at", "messages", ["project_id", "created_at"])

def downgrade() -> None:
    op.drop_index("ix_messages_project_created_at", table_name="messages")
    op.drop_table("messages")

    op.drop_index("uq_project_requests_pending", table_name="project_requests")
    op.drop_index("ix_project_requests_project_id", table_name="project_requests")
    op.drop_index("ix_project_requests_user_id", table_name="project_requests")
    op.drop_table("project_requests")

    op.drop_index("ix_memberships_project_id", table_name="memberships")
    op.drop_table("memberships")

    op.drop_index("ix_projects_owner_id", table_name="projects")
    op.drop_table("projects")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    postgresql.ENUM(name="request_status").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="membership_status").drop(op.get_bind(), checkfirst=True)
