"""Initial schema: users, organizations, memberships, licenses, invitations, settings.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("external_id", sa.String(200), nullable=False),
        sa.Column("email", sa.String(256), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="User"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_external_id", "users", ["external_id"], unique=True)
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "organizations",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_organizations_name", "organizations", ["name"])

    op.create_table(
        "licenses",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("assigned_to_user_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("auto_renewal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_licenses_org_assignee", "licenses", ["organization_id", "assigned_to_user_id"]
    )
    # Renewal sweep predicate
    op.create_index(
        "ix_licenses_renewal_due",
        "licenses",
        ["expires_at"],
        postgresql_where=sa.text("is_active AND auto_renewal"),
    )

    op.create_table(
        "organization_memberships",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="Member"),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.Column("assigned_license_id", _uuid(), sa.ForeignKey("licenses.id"), nullable=True),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_membership_org_user"),
        sa.UniqueConstraint("assigned_license_id", name="uq_membership_assigned_license"),
        sa.CheckConstraint("role IN ('Owner', 'Admin', 'Member')", name="ck_membership_role"),
    )
    op.create_index(
        "ix_organization_memberships_organization_id",
        "organization_memberships",
        ["organization_id"],
    )
    op.create_index("ix_organization_memberships_user_id", "organization_memberships", ["user_id"])

    op.create_table(
        "invitations",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("organization_id", _uuid(), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("email", sa.String(256), nullable=False),
        sa.Column("token", sa.String(100), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="Member"),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("invited_by_user_id", _uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("organization_id", "email", name="uq_invitation_org_email"),
    )
    op.create_index("ix_invitations_token", "invitations", ["token"], unique=True)
    op.create_index("ix_invitations_organization_id", "invitations", ["organization_id"])

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.String(1000), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.drop_table("app_settings")
    op.drop_table("invitations")
    op.drop_table("organization_memberships")
    op.drop_table("licenses")
    op.drop_table("organizations")
    op.drop_table("users")
