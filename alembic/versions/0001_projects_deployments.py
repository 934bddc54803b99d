"""Projects, deployments and nested deployment settings

Revision ID: 0001_projects_deployments
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision = "0001_projects_deployments"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE = sa.text("deleted_at IS NULL")
ACTIVE_PRODUCTION = sa.text("mode = 'production' AND deleted_at IS NULL")


def _timestamps(soft_delete: bool = True) -> list:
    cols = [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]
    if soft_delete:
        cols.append(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True))
    return cols


def _child(table: str, *columns, soft_delete: bool = True) -> None:
    op.create_table(
        table,
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("deployment_id", sa.BigInteger(), sa.ForeignKey("deployments.id"), nullable=False),
        *columns,
        *_timestamps(soft_delete),
    )
    op.create_index(f"ix_{table}_deployment_id", table, ["deployment_id"])


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=False, server_default=""),
        *_timestamps(),
    )

    op.create_table(
        "deployments",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("project_id", sa.BigInteger(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("mode", sa.String(16), nullable=False),
        sa.Column("backend_host", sa.String(255), nullable=False),
        sa.Column("frontend_host", sa.String(255), nullable=False),
        sa.Column("mail_from_host", sa.String(255), nullable=False),
        sa.Column("publishable_key", sa.String(512), nullable=False),
        sa.Column("maintenance_mode", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("verification_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("domain_verification_records", JSONB(), nullable=True),
        sa.Column("email_verification_records", JSONB(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_deployments_project_id", "deployments", ["project_id"])
    op.create_index(
        "uq_deployments_backend_host_active", "deployments", ["backend_host"],
        unique=True, postgresql_where=ACTIVE,
    )
    op.create_index(
        "uq_deployments_frontend_host_active", "deployments", ["frontend_host"],
        unique=True, postgresql_where=ACTIVE,
    )
    op.create_index(
        "uq_deployments_mail_from_host_active", "deployments", ["mail_from_host"],
        unique=True, postgresql_where=ACTIVE_PRODUCTION,
    )
    op.create_index(
        "uq_deployments_project_production", "deployments", ["project_id"],
        unique=True, postgresql_where=ACTIVE_PRODUCTION,
    )

    _child(
        "deployment_auth_settings",
        sa.Column("email_address", JSONB(), nullable=False),
        sa.Column("phone_number", JSONB(), nullable=False),
        sa.Column("username", JSONB(), nullable=False),
        sa.Column("first_name", JSONB(), nullable=False),
        sa.Column("last_name", JSONB(), nullable=False),
        sa.Column("password", JSONB(), nullable=False),
        sa.Column("first_factor", sa.String(32), nullable=False),
        sa.Column("alternate_first_factors", JSONB(), nullable=False),
        sa.Column("auth_factors_enabled", JSONB(), nullable=False),
        sa.Column("verification_policy", JSONB(), nullable=False),
        sa.Column("second_factor_policy", sa.String(16), nullable=False, server_default="none"),
        sa.Column("passkey", JSONB(), nullable=False),
        sa.Column("magic_link", JSONB(), nullable=False),
        sa.Column("multi_session_support", JSONB(), nullable=False),
        sa.Column("session_token_lifetime", sa.Integer(), nullable=False),
        sa.Column("session_validity_period", sa.Integer(), nullable=False),
        sa.Column("session_inactive_timeout", sa.Integer(), nullable=False),
    )

    _child(
        "deployment_ui_settings",
        sa.Column("app_name", sa.String(100), nullable=False),
        sa.Column("logo_image_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("favicon_image_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("tos_page_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("privacy_policy_url", sa.String(500), nullable=False, server_default=""),
        sa.Column("sign_in_page_url", sa.String(500), nullable=False),
        sa.Column("sign_up_page_url", sa.String(500), nullable=False),
        sa.Column("waitlist_page_url", sa.String(500), nullable=False),
        sa.Column("after_sign_out_one_page_url", sa.String(500), nullable=False),
        sa.Column("after_sign_out_all_page_url", sa.String(500), nullable=False),
        sa.Column("organization_profile_url", sa.String(500), nullable=False),
        sa.Column("create_organization_url", sa.String(500), nullable=False),
        sa.Column("user_profile_url", sa.String(500), nullable=False),
        sa.Column("light_mode_settings", JSONB(), nullable=False),
        sa.Column("dark_mode_settings", JSONB(), nullable=False),
        sa.Column("use_initials_for_user_profile_image", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("use_initials_for_organization_profile_image", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )

    for roles_table in ("workspace_roles", "organization_roles"):
        _child(
            roles_table,
            sa.Column("name", sa.String(64), nullable=False),
            sa.Column("permissions", JSONB(), nullable=False),
            soft_delete=False,
        )

    _child(
        "deployment_b2b_settings",
        sa.Column("organizations_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("workspaces_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ip_allowlist_per_org_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("max_allowed_org_members", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("max_allowed_workspace_members", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("allow_org_deletion", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("allow_workspace_deletion", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("custom_org_role_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("custom_workspace_role_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("allow_users_to_create_orgs", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("max_orgs_per_user", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("default_workspace_creator_role_id", sa.BigInteger(), nullable=False),
        sa.Column("default_workspace_member_role_id", sa.BigInteger(), nullable=False),
        sa.Column("default_org_creator_role_id", sa.BigInteger(), nullable=False),
        sa.Column("default_org_member_role_id", sa.BigInteger(), nullable=False),
    )

    _child(
        "deployment_restrictions",
        sa.Column("allowlist_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("blocklist_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("block_subaddresses", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("block_disposable_emails", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("block_voip_numbers", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("country_restrictions", JSONB(), nullable=False),
        sa.Column("banned_keywords", JSONB(), nullable=False),
        sa.Column("allowlisted_resources", JSONB(), nullable=False),
        sa.Column("blocklisted_resources", JSONB(), nullable=False),
        sa.Column("sign_up_mode", sa.String(16), nullable=False, server_default="public"),
    )

    _child("deployment_email_templates", sa.Column("templates", JSONB(), nullable=False))
    _child("deployment_sms_templates", sa.Column("templates", JSONB(), nullable=False))

    _child(
        "deployment_key_pairs",
        sa.Column("algorithm", sa.String(16), nullable=False, server_default="RS256"),
        sa.Column("public_key", sa.Text(), nullable=False),
        sa.Column("private_key", sa.Text(), nullable=False),
    )

    _child(
        "deployment_social_connections",
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("credentials", JSONB(), nullable=False),
    )


def downgrade() -> None:
    for table in (
        "deployment_social_connections",
        "deployment_key_pairs",
        "deployment_sms_templates",
        "deployment_email_templates",
        "deployment_restrictions",
        "deployment_b2b_settings",
        "organization_roles",
        "workspace_roles",
        "deployment_ui_settings",
        "deployment_auth_settings",
    ):
        op.drop_table(table)
    op.drop_table("deployments")
    op.drop_table("projects")
