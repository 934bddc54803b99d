"""
Default nested settings for a new deployment.

Pure builders: each returns unsaved ORM rows bound to ``deployment_id``.
``build_default_settings`` assembles the full set inserted alongside the
deployment row.
"""
from typing import Iterable, List, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from app.core.snowflake import next_id
from app.db.base_class import Base
from app.models.deployment_settings import (
    DeploymentAuthSettings,
    DeploymentB2bSettings,
    DeploymentEmailTemplate,
    DeploymentKeyPair,
    DeploymentRestrictions,
    DeploymentSmsTemplate,
    DeploymentSocialConnection,
    DeploymentUISettings,
    OrganizationRole,
    WorkspaceRole,
)

SOCIAL_PROVIDERS = (
    "google",
    "apple",
    "facebook",
    "github",
    "microsoft",
    "discord",
    "linkedin",
    "gitlab",
    "x",
)

EMPTY_OAUTH_CREDENTIALS = {
    "client_id": "",
    "client_secret": "",
    "redirect_uri": "",
    "scopes": [],
}

ADMIN_PERMISSIONS = ["admin", "manage_members", "manage_roles", "manage_settings", "read"]
MEMBER_PERMISSIONS = ["read"]


# ═══════════════════════════════════════════
#  Auth
# ═══════════════════════════════════════════

def resolve_first_factors(auth_methods: Iterable[str]) -> Tuple[str, List[str]]:
    """
    Pick the primary sign-in factor and its alternates.

    Email wins over phone, phone over username. With none of the three
    enabled (OAuth only) the primary stays ``email_password``.
    """
    methods = set(auth_methods)
    email, phone, username = "email" in methods, "phone" in methods, "username" in methods

    alternates: List[str] = []
    if email:
        first = "email_password"
        if phone:
            alternates.append("phone_otp")
        if username:
            alternates.append("username_password")
    elif phone:
        first = "phone_otp"
        if username:
            alternates.append("username_password")
    elif username:
        first = "username_password"
    else:
        first = "email_password"
    return first, alternates


def _identifier(enabled: bool) -> dict:
    return {"enabled": enabled, "required": enabled, "verify_signup": enabled}


def _name_field() -> dict:
    return {"enabled": True, "required": False}


def build_auth_settings(deployment_id: int, auth_methods: Iterable[str]) -> DeploymentAuthSettings:
    methods = set(auth_methods)
    email, phone, username = "email" in methods, "phone" in methods, "username" in methods
    first_factor, alternates = resolve_first_factors(methods)

    return DeploymentAuthSettings(
        id=next_id(),
        deployment_id=deployment_id,
        email_address=_identifier(email),
        phone_number=_identifier(phone),
        username={**_identifier(username), "min_length": 3, "max_length": 20},
        first_name=_name_field(),
        last_name=_name_field(),
        password={
            "enabled": True,
            "min_length": 8,
            "require_lowercase": True,
            "require_uppercase": True,
            "require_number": True,
            "require_special": False,
        },
        first_factor=first_factor,
        alternate_first_factors=alternates,
        auth_factors_enabled={
            "email_password": email,
            "username_password": username,
            "email_otp": False,
            "email_magic_link": False,
            "phone_otp": phone,
            "web3_wallet": False,
            "backup_code": False,
            "authenticator": False,
        },
        verification_policy={"email": email, "phone_number": phone},
        second_factor_policy="none",
        passkey={"enabled": False, "allow_autofill": True},
        magic_link={"enabled": False},
        multi_session_support={"enabled": False, "max_accounts_per_session": 1},
        session_token_lifetime=60,
        session_validity_period=7 * 24 * 3600,
        session_inactive_timeout=24 * 3600,
    )


# ═══════════════════════════════════════════
#  UI
# ═══════════════════════════════════════════

def build_ui_settings(
    deployment_id: int,
    app_name: str,
    frontend_host: str,
    logo_image_url: str = "",
) -> DeploymentUISettings:
    base = frontend_host if frontend_host.startswith("https://") else f"https://{frontend_host}"
    return DeploymentUISettings(
        id=next_id(),
        deployment_id=deployment_id,
        app_name=app_name,
        logo_image_url=logo_image_url,
        sign_in_page_url=f"{base}/sign-in",
        sign_up_page_url=f"{base}/sign-up",
        waitlist_page_url=f"{base}/waitlist",
        after_sign_out_one_page_url=f"{base}/account-picker",
        after_sign_out_all_page_url=f"{base}/sign-in",
        organization_profile_url=f"{base}/organization",
        create_organization_url=f"{base}/create-organization",
        user_profile_url=f"{base}/me",
        light_mode_settings={
            "primary_color": "#6366F1",
            "background_color": "#FFFFFF",
            "text_color": "#111827",
        },
        dark_mode_settings={
            "primary_color": "#818CF8",
            "background_color": "#111827",
            "text_color": "#F9FAFB",
        },
        use_initials_for_user_profile_image=True,
        use_initials_for_organization_profile_image=True,
    )


# ═══════════════════════════════════════════
#  B2B (roles first, settings reference their ids)
# ═══════════════════════════════════════════

def build_b2b_settings(deployment_id: int) -> List[Base]:
    ws_admin = WorkspaceRole(id=next_id(), deployment_id=deployment_id, name="Admin", permissions=ADMIN_PERMISSIONS)
    ws_member = WorkspaceRole(id=next_id(), deployment_id=deployment_id, name="Member", permissions=MEMBER_PERMISSIONS)
    org_admin = OrganizationRole(id=next_id(), deployment_id=deployment_id, name="Admin", permissions=ADMIN_PERMISSIONS)
    org_member = OrganizationRole(id=next_id(), deployment_id=deployment_id, name="Member", permissions=MEMBER_PERMISSIONS)

    settings_row = DeploymentB2bSettings(
        id=next_id(),
        deployment_id=deployment_id,
        default_workspace_creator_role_id=ws_admin.id,
        default_workspace_member_role_id=ws_member.id,
        default_org_creator_role_id=org_admin.id,
        default_org_member_role_id=org_member.id,
    )
    return [ws_admin, ws_member, org_admin, org_member, settings_row]


def build_restrictions(deployment_id: int) -> DeploymentRestrictions:
    return DeploymentRestrictions(
        id=next_id(),
        deployment_id=deployment_id,
        country_restrictions={"enabled": False, "country_codes": []},
        banned_keywords=[],
        allowlisted_resources=[],
        blocklisted_resources=[],
        sign_up_mode="public",
    )


# ═══════════════════════════════════════════
#  Templates
# ═══════════════════════════════════════════

DEFAULT_EMAIL_TEMPLATES = {
    "verification_code": {
        "subject": "{{app_name}} verification code",
        "body": "Your verification code is {{code}}.",
    },
    "reset_password_code": {
        "subject": "Reset your {{app_name}} password",
        "body": "Use {{code}} to reset your password.",
    },
    "magic_link": {
        "subject": "Sign in to {{app_name}}",
        "body": "Click {{link}} to sign in.",
    },
    "organization_invitation": {
        "subject": "You have been invited to {{organization_name}}",
        "body": "Accept the invitation: {{link}}",
    },
    "password_changed": {
        "subject": "Your {{app_name}} password was changed",
        "body": "If this was not you, contact support.",
    },
}

DEFAULT_SMS_TEMPLATES = {
    "verification_code": "{{app_name}}: your verification code is {{code}}",
    "reset_password_code": "{{app_name}}: use {{code}} to reset your password",
}


def build_email_templates(deployment_id: int) -> DeploymentEmailTemplate:
    return DeploymentEmailTemplate(
        id=next_id(), deployment_id=deployment_id, templates=dict(DEFAULT_EMAIL_TEMPLATES)
    )


def build_sms_templates(deployment_id: int) -> DeploymentSmsTemplate:
    return DeploymentSmsTemplate(
        id=next_id(), deployment_id=deployment_id, templates=dict(DEFAULT_SMS_TEMPLATES)
    )


# ═══════════════════════════════════════════
#  Signing key pair
# ═══════════════════════════════════════════

def generate_key_pair_pem() -> Tuple[str, str]:
    """RSA-2048 key pair as (public PEM, PKCS8 private PEM)."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return public_pem, private_pem


def build_key_pair(deployment_id: int) -> DeploymentKeyPair:
    public_pem, private_pem = generate_key_pair_pem()
    return DeploymentKeyPair(
        id=next_id(),
        deployment_id=deployment_id,
        algorithm="RS256",
        public_key=public_pem,
        private_key=private_pem,
    )


def build_social_connections(deployment_id: int, auth_methods: Iterable[str]) -> List[DeploymentSocialConnection]:
    methods = set(auth_methods)
    return [
        DeploymentSocialConnection(
            id=next_id(),
            deployment_id=deployment_id,
            provider=provider,
            enabled=True,
            credentials=dict(EMPTY_OAUTH_CREDENTIALS),
        )
        for provider in SOCIAL_PROVIDERS
        if provider in methods or f"{provider}_oauth" in methods
    ]


def build_default_settings(
    deployment_id: int,
    *,
    app_name: str,
    frontend_host: str,
    auth_methods: Iterable[str],
    logo_image_url: str = "",
) -> List[Base]:
    """Every nested settings row a fresh deployment starts with, in insert order."""
    auth_methods = list(auth_methods)
    rows: List[Base] = [
        build_auth_settings(deployment_id, auth_methods),
        build_ui_settings(deployment_id, app_name, frontend_host, logo_image_url),
    ]
    rows.extend(build_b2b_settings(deployment_id))
    rows.append(build_restrictions(deployment_id))
    rows.append(build_email_templates(deployment_id))
    rows.append(build_sms_templates(deployment_id))
    rows.append(build_key_pair(deployment_id))
    rows.extend(build_social_connections(deployment_id, auth_methods))
    return rows
