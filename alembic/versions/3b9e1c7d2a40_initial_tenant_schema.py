"""initial tenant schema

Revision ID: 3b9e1c7d2a40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b9e1c7d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def _org_fk(**kw) -> sa.Column:
    return sa.Column(
        "org_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        **kw,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        _created_at(),
    )

    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.String(length=20), nullable=False),
        sa.Column("slug", sa.String(length=128), nullable=False, unique=True),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_free_refill_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "credits_reminder_sent", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("stripe_customer_id", sa.String(length=255), nullable=True, unique=True),
        _created_at(),
        sa.CheckConstraint("credits >= 0", name="ck_org_credits_nonneg"),
    )
    op.create_index("ix_organizations_deleted_at", "organizations", ["deleted_at"])

    op.create_table(
        "organization_members",
        _id(),
        _org_fk(),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="MEMBER"),
        _created_at(),
        sa.UniqueConstraint("org_id", "user_id", name="uq_org_member"),
    )
    op.create_index(
        "ix_organization_members_user_id", "organization_members", ["user_id"]
    )

    op.create_table(
        "organization_invites",
        _id(),
        sa.Column("email", sa.String(length=320), nullable=False),
        _org_fk(),
        sa.Column(
            "inviter_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="MEMBER"),
        sa.Column("token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="PENDING"
        ),
        _created_at(),
    )
    op.create_index(
        "ix_invites_org_status", "organization_invites", ["org_id", "status"]
    )

    op.create_table(
        "projects",
        _id(),
        sa.Column("name", sa.String(length=20), nullable=False),
        sa.Column("slug", sa.String(length=128), nullable=False, unique=True),
        _org_fk(),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_projects_org_id", "projects", ["org_id"])

    op.create_table(
        "subscriptions",
        _id(),
        _org_fk(unique=True),
        sa.Column(
            "stripe_subscription_id", sa.String(length=255), nullable=False, unique=True
        ),
        sa.Column("plan_id", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="active"),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "period_end_reminder_sent",
            sa.Boolean(),
            nullable=False,
            server_default="false",
        ),
        _created_at(),
    )


def downgrade() -> None:
    op.drop_table("subscriptions")
    op.drop_index("ix_projects_org_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_invites_org_status", table_name="organization_invites")
    op.drop_table("organization_invites")
    op.drop_index("ix_organization_members_user_id", table_name="organization_members")
    op.drop_table("organization_members")
    op.drop_index("ix_organizations_deleted_at", table_name="organizations")
    op.drop_table("organizations")
    op.drop_table("users")
