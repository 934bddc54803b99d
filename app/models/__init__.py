from app.db.base_class import Base
from app.models.project import Project
from app.models.deployment import Deployment, DnsVerificationEvent
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
