"""Initial shared schema: tenants, tenant domains and admin tokens.

Revision ID: 001_initial_shared
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision: str = "001_initial_shared"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = ("shared",)
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS shared")

    op.create_table(
        "tenants",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("project_code", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'active'"), nullable=False),
        sa.Column("pim_api_url", sa.String(500), nullable=True),
        sa.Column("b2b_api_url", sa.String(500), nullable=True),
        sa.Column("api_key_id", sa.String(200), nullable=True),
        sa.Column("api_secret", sa.String(500), nullable=True),
        sa.Column("database_url", sa.String(500), nullable=True),
        sa.Column("database_name", sa.String(100), nullable=True),
        sa.Column("require_login", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("home_settings_customer_id", sa.String(100), nullable=True),
        sa.Column("builder_url", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        schema="shared",
    )

    op.create_table(
        "tenant_domains",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "tenant_id",
            sa.String(100),
            sa.ForeignKey("shared.tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("hostname", sa.String(255), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        schema="shared",
    )
    op.create_index(
        "ix_tenant_domains_hostname",
        "tenant_domains",
        ["hostname"],
        schema="shared",
    )

    op.create_table(
        "admin_tokens",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("token_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        schema="shared",
    )


def downgrade() -> None:
    op.drop_table("admin_tokens", schema="shared")
    op.drop_index("ix_tenant_domains_hostname", table_name="tenant_domains", schema="shared")
    op.drop_table("tenant_domains", schema="shared")
    op.drop_table("tenants", schema="shared")
    op.execute("DROP SCHEMA IF EXISTS shared CASCADE")
