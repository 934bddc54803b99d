from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class DeploymentMode(str, Enum):
    STAGING = "staging"
    PRODUCTION = "production"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    VERIFIED = "verified"
    FAILED = "failed"


class RecordType(str, Enum):
    A = "A"
    CNAME = "CNAME"
    TXT = "TXT"
    MX = "MX"


# ═══════════════════════════════════════════
#  DNS record documents (stored as JSON on the deployment row)
# ═══════════════════════════════════════════

_EXPECTED_FIELDS = frozenset({"name", "record_type", "value"})


class DnsRecord(BaseModel):
    """
    A DNS record the customer must publish.

    ``name`` / ``record_type`` / ``value`` are fixed once the record exists;
    only the verification stamps change, through ``mark_attempt`` and
    ``mark_verified``.
    """

    model_config = ConfigDict(use_enum_values=True)

    name: str
    record_type: RecordType
    value: str
    verified: bool = False
    verification_attempted_at: Optional[datetime] = None
    last_verified_at: Optional[datetime] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _EXPECTED_FIELDS:
            raise AttributeError(f"DnsRecord.{name} is immutable")
        super().__setattr__(name, value)

    def mark_attempt(self, at: datetime) -> None:
        self.verification_attempted_at = at

    def mark_verified(self, at: datetime) -> None:
        self.verified = True
        self.last_verified_at = at


class DomainVerificationRecords(BaseModel):
    edge_verification: List[DnsRecord] = Field(default_factory=list)
    custom_hostname_verification: List[DnsRecord] = Field(default_factory=list)
    frontend_hostname_id: Optional[str] = None
    backend_hostname_id: Optional[str] = None


class EmailVerificationRecords(BaseModel):
    dkim_records: List[DnsRecord] = Field(default_factory=list)
    return_path_records: List[DnsRecord] = Field(default_factory=list)
    email_domain_id: Optional[int] = None


# ═══════════════════════════════════════════
#  API payloads
# ═══════════════════════════════════════════

class ProductionDeploymentCreate(BaseModel):
    domain: str
    auth_methods: List[str]


class Deployment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    mode: DeploymentMode
    backend_host: str
    frontend_host: str
    mail_from_host: str
    publishable_key: str
    maintenance_mode: bool = False
    verification_status: VerificationStatus
    domain_verification_records: Optional[DomainVerificationRecords] = None
    email_verification_records: Optional[EmailVerificationRecords] = None
    created_at: datetime
    updated_at: datetime

    # Snowflake ids exceed the JS safe-integer range
    @field_serializer("id", "project_id")
    def _id_as_string(self, value: int) -> str:
        return str(value)


class ProjectWithDeployments(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    image_url: str = ""
    created_at: datetime
    updated_at: datetime
    deployments: List[Deployment] = Field(default_factory=list)

    @field_serializer("id")
    def _id_as_string(self, value: int) -> str:
        return str(value)


# ═══════════════════════════════════════════
#  Store patch
# ═══════════════════════════════════════════

class DeploymentPatch(BaseModel):
    """Partial update of a deployment row; only fields explicitly set are written."""

    verification_status: Optional[VerificationStatus] = None
    domain_verification_records: Optional[DomainVerificationRecords] = None
    email_verification_records: Optional[EmailVerificationRecords] = None
    maintenance_mode: Optional[bool] = None
    deleted_at: Optional[datetime] = None
