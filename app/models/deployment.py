"""
Deployment Model

One row per tenant environment. The DNS record sets are stored as JSON
documents on the row (current state); every verification round is also
appended to ``dns_verification_events``.

Uniqueness among non-deleted rows is enforced by partial unique indexes:
  - each of backend_host / frontend_host
  - mail_from_host among production deployments
  - one production deployment per project
"""
from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, ForeignKey, Index, String, Text, text,
)
from sqlalchemy.orm import relationship

from app.db.base_class import Base
from app.models.types import JSONDocument, utcnow

_ACTIVE = text("deleted_at IS NULL")
_ACTIVE_PRODUCTION = text("mode = 'production' AND deleted_at IS NULL")


def _active_unique(name: str, *columns: str, where=_ACTIVE) -> Index:
    return Index(name, *columns, unique=True, postgresql_where=where, sqlite_where=where)


class Deployment(Base):
    id = Column(BigInteger, primary_key=True, autoincrement=False)
    project_id = Column(BigInteger, ForeignKey("projects.id"), nullable=False, index=True)
    mode = Column(String(16), nullable=False)                       # staging, production
    backend_host = Column(String(255), nullable=False)
    frontend_host = Column(String(255), nullable=False)
    mail_from_host = Column(String(255), nullable=False)
    publishable_key = Column(String(512), nullable=False)
    maintenance_mode = Column(Boolean, nullable=False, default=False)

    # ── DNS verification state ──
    verification_status = Column(String(16), nullable=False, default="pending")
    domain_verification_records = Column(JSONDocument, nullable=True)
    email_verification_records = Column(JSONDocument, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    project = relationship("Project", back_populates="deployments")

    __table_args__ = (
        _active_unique("uq_deployments_backend_host_active", "backend_host"),
        _active_unique("uq_deployments_frontend_host_active", "frontend_host"),
        # staging deployments share one mail-from host
        _active_unique("uq_deployments_mail_from_host_active", "mail_from_host", where=_ACTIVE_PRODUCTION),
        _active_unique("uq_deployments_project_production", "project_id", where=_ACTIVE_PRODUCTION),
    )


class DnsVerificationEvent(Base):
    """Append-only log of every record check made by the verification poller."""

    __tablename__ = "dns_verification_events"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    deployment_id = Column(BigInteger, ForeignKey("deployments.id"), nullable=False, index=True)
    record_set = Column(String(32), nullable=False)       # edge_verification, custom_hostname_verification, dkim_records, return_path_records
    record_name = Column(String(255), nullable=False)
    record_type = Column(String(8), nullable=False)
    expected_value = Column(Text, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    method = Column(String(16), nullable=False)           # edge_provider, dns
    error = Column(Text, nullable=True)
    attempted_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_dns_verification_events_record", "deployment_id", "record_name", "record_type"),
    )
