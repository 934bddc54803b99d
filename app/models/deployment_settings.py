"""
Nested per-deployment settings.

One table per settings group, foreign-keyed to ``deployments.id`` and soft
deleted together with the deployment. Role rows are hard deleted.
"""
from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, ForeignKey, Integer, String, Text,
)
from sqlalchemy.orm import declared_attr

from app.db.base_class import Base
from app.models.types import JSONDocument, utcnow


class DeploymentChildMixin:
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @declared_attr
    def deployment_id(cls):
        return Column(BigInteger, ForeignKey("deployments.id"), nullable=False, index=True)


class SoftDeleteMixin:
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class DeploymentAuthSettings(DeploymentChildMixin, SoftDeleteMixin, Base):
    __tablename__ = "deployment_auth_settings"

    email_address = Column(JSONDocument, nullable=False)
    phone_number = Column(JSONDocument, nullable=False)
    username = Column(JSONDocument, nullable=False)
    first_name = Column(JSONDocument, nullable=False)
    last_name = Column(JSONDocument, nullable=False)
    password = Column(JSONDocument, nullable=False)
    first_factor = Column(String(32), nullable=False)
    alternate_first_factors = Column(JSONDocument, nullable=False, default=list)
    auth_factors_enabled = Column(JSONDocument, nullable=False)
    verification_policy = Column(JSONDocument, nullable=False)
    second_factor_policy = Column(String(16), nullable=False, default="none")
    passkey = Column(JSONDocument, nullable=False)
    magic_link = Column(JSONDocument, nullable=False)
    multi_session_support = Column(JSONDocument, nullable=False)
    session_token_lifetime = Column(Integer, nullable=False)        # seconds
    session_validity_period = Column(Integer, nullable=False)       # seconds
    session_inactive_timeout = Column(Integer, nullable=False)      # seconds


class DeploymentUISettings(DeploymentChildMixin, SoftDeleteMixin, Base):
    __tablename__ = "deployment_ui_settings"

    app_name = Column(String(100), nullable=False)
    logo_image_url = Column(String(500), nullable=False, default="")
    favicon_image_url = Column(String(500), nullable=False, default="")
    tos_page_url = Column(String(500), nullable=False, default="")
    privacy_policy_url = Column(String(500), nullable=False, default="")
    sign_in_page_url = Column(String(500), nullable=False)
    sign_up_page_url = Column(String(500), nullable=False)
    waitlist_page_url = Column(String(500), nullable=False)
    after_sign_out_one_page_url = Column(String(500), nullable=False)
    after_sign_out_all_page_url = Column(String(500), nullable=False)
    organization_profile_url = Column(String(500), nullable=False)
    create_organization_url = Column(String(500), nullable=False)
    user_profile_url = Column(String(500), nullable=False)
    light_mode_settings = Column(JSONDocument, nullable=False)
    dark_mode_settings = Column(JSONDocument, nullable=False)
    use_initials_for_user_profile_image = Column(Boolean, nullable=False, default=True)
    use_initials_for_organization_profile_image = Column(Boolean, nullable=False, default=True)


class WorkspaceRole(DeploymentChildMixin, Base):
    __tablename__ = "workspace_roles"

    name = Column(String(64), nullable=False)
    permissions = Column(JSONDocument, nullable=False, default=list)


class OrganizationRole(DeploymentChildMixin, Base):
    __tablename__ = "organization_roles"

    name = Column(String(64), nullable=False)
    permissions = Column(JSONDocument, nullable=False, default=list)


class DeploymentB2bSettings(DeploymentChildMixin, SoftDeleteMixin, Base):
    __tablename__ = "deployment_b2b_settings"

    organizations_enabled = Column(Boolean, nullable=False, default=False)
    workspaces_enabled = Column(Boolean, nullable=False, default=False)
    ip_allowlist_per_org_enabled = Column(Boolean, nullable=False, default=False)
    max_allowed_org_members = Column(Integer, nullable=False, default=100)
    max_allowed_workspace_members = Column(Integer, nullable=False, default=100)
    allow_org_deletion = Column(Boolean, nullable=False, default=True)
    allow_workspace_deletion = Column(Boolean, nullable=False, default=True)
    custom_org_role_enabled = Column(Boolean, nullable=False, default=False)
    custom_workspace_role_enabled = Column(Boolean, nullable=False, default=False)
    allow_users_to_create_orgs = Column(Boolean, nullable=False, default=True)
    max_orgs_per_user = Column(Integer, nullable=False, default=5)
    default_workspace_creator_role_id = Column(BigInteger, nullable=False)
    default_workspace_member_role_id = Column(BigInteger, nullable=False)
    default_org_creator_role_id = Column(BigInteger, nullable=False)
    default_org_member_role_id = Column(BigInteger, nullable=False)


class DeploymentRestrictions(DeploymentChildMixin, SoftDeleteMixin, Base):
    __tablename__ = "deployment_restrictions"

    allowlist_enabled = Column(Boolean, nullable=False, default=False)
    blocklist_enabled = Column(Boolean, nullable=False, default=False)
    block_subaddresses = Column(Boolean, nullable=False, default=False)
    block_disposable_emails = Column(Boolean, nullable=False, default=False)
    block_voip_numbers = Column(Boolean, nullable=False, default=False)
    country_restrictions = Column(JSONDocument, nullable=False)
    banned_keywords = Column(JSONDocument, nullable=False, default=list)
    allowlisted_resources = Column(JSONDocument, nullable=False, default=list)
    blocklisted_resources = Column(JSONDocument, nullable=False, default=list)
    sign_up_mode = Column(String(16), nullable=False, default="public")


class DeploymentEmailTemplate(DeploymentChildMixin, SoftDeleteMixin, Base):
    __tablename__ = "deployment_email_templates"

    templates = Column(JSONDocument, nullable=False)    # template name -> {subject, body}


class DeploymentSmsTemplate(DeploymentChildMixin, SoftDeleteMixin, Base):
    __tablename__ = "deployment_sms_templates"

    templates = Column(JSONDocument, nullable=False)    # template name -> body


class DeploymentKeyPair(DeploymentChildMixin, SoftDeleteMixin, Base):
    __tablename__ = "deployment_key_pairs"

    algorithm = Column(String(16), nullable=False, default="RS256")
    public_key = Column(Text, nullable=False)
    private_key = Column(Text, nullable=False)


class DeploymentSocialConnection(DeploymentChildMixin, SoftDeleteMixin, Base):
    __tablename__ = "deployment_social_connections"

    provider = Column(String(32), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    credentials = Column(JSONDocument, nullable=False)


# Settings tables soft deleted with the deployment
SOFT_DELETED_SETTINGS = (
    DeploymentAuthSettings,
    DeploymentUISettings,
    DeploymentB2bSettings,
    DeploymentRestrictions,
    DeploymentEmailTemplate,
    DeploymentSmsTemplate,
    DeploymentKeyPair,
    DeploymentSocialConnection,
)
