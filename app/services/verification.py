"""
Verification poller.

``verify_deployment_dns_records`` is safe to call any number of times from
the beat task, a webhook or a manual retry. A round that cannot reach DNS or
the providers simply makes no progress; status only moves forward.
"""
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import AppError, NotFoundError
from app.core.snowflake import next_id
from app.crud import crud_deployment
from app.db.transaction import unit_of_work
from app.logging_config import deployment_id_ctx
from app.middleware.metrics import DEPLOYMENT_VERIFICATIONS
from app.models.deployment import Deployment, DnsVerificationEvent
from app.models.types import utcnow
from app.schemas.deployment import (
    DeploymentPatch,
    DomainVerificationRecords,
    EmailVerificationRecords,
    VerificationStatus,
)
from app.services.dns_verification import (
    EdgeStatusChecker,
    RecordOutcome,
    Resolver,
    are_domain_records_verified,
    are_email_records_verified,
    verify_domain_records,
    verify_email_records,
)
from app.services.edge_hostname import generate_domain_verification_records

logger = logging.getLogger("console.dns")


def _load_domain_records(deployment: Deployment) -> DomainVerificationRecords:
    if deployment.domain_verification_records:
        try:
            return DomainVerificationRecords.model_validate(deployment.domain_verification_records)
        except SchemaError:
            logger.warning("Stored domain records of deployment %s are unreadable, rebuilding", deployment.id)
    # expected records are derived from the hosts, never empty
    return generate_domain_verification_records(deployment.frontend_host, deployment.backend_host)


def _load_email_records(deployment: Deployment) -> EmailVerificationRecords:
    if deployment.email_verification_records:
        try:
            return EmailVerificationRecords.model_validate(deployment.email_verification_records)
        except SchemaError:
            logger.warning("Stored email records of deployment %s are unreadable, resetting", deployment.id)
    return EmailVerificationRecords()


def _to_event(deployment_id: int, outcome: RecordOutcome) -> DnsVerificationEvent:
    record = outcome.record
    return DnsVerificationEvent(
        id=next_id(),
        deployment_id=deployment_id,
        record_set=outcome.record_set,
        record_name=record.name,
        record_type=str(record.record_type),
        expected_value=record.value,
        verified=outcome.verified,
        method=outcome.method,
        error=outcome.error,
        attempted_at=record.verification_attempted_at or utcnow(),
    )


def verify_deployment_dns_records(
    db: Session,
    deployment_id: int,
    *,
    edge_provider: Optional[EdgeStatusChecker] = None,
    resolver: Optional[Resolver] = None,
) -> Deployment:
    """
    Run one verification round for a deployment.

    Raises:
        NotFoundError: unknown or deleted deployment (the only error raised)
    """
    deployment = crud_deployment.get_active(db, deployment_id)
    if deployment is None:
        raise NotFoundError("Deployment not found")

    if deployment.verification_status == VerificationStatus.VERIFIED.value:
        return deployment

    deployment_id_ctx.set(str(deployment_id))
    domain_records = _load_domain_records(deployment)
    email_records = _load_email_records(deployment)
    now = utcnow()

    outcomes: List[RecordOutcome] = []
    try:
        outcomes.extend(verify_domain_records(domain_records, edge_provider, resolver, now=now))
    except Exception:
        logger.exception("Domain record verification aborted for deployment %s", deployment_id)
    try:
        outcomes.extend(verify_email_records(email_records, resolver, now=now))
    except Exception:
        logger.exception("Email record verification aborted for deployment %s", deployment_id)

    domain_verified = are_domain_records_verified(domain_records)
    email_verified = are_email_records_verified(email_records)
    status = (
        VerificationStatus.VERIFIED
        if domain_verified and email_verified
        else VerificationStatus.IN_PROGRESS
    )

    try:
        with unit_of_work(db, "persist verification round"):
            crud_deployment.apply_patch(db, db_obj=deployment, patch=DeploymentPatch(
                verification_status=status,
                domain_verification_records=domain_records,
                email_verification_records=email_records,
            ))
            crud_deployment.add_verification_events(
                db, (_to_event(deployment_id, o) for o in outcomes)
            )
    except AppError as exc:
        logger.error("Verification round for deployment %s not persisted: %s", deployment_id, exc)
        DEPLOYMENT_VERIFICATIONS.labels(status="not_persisted").inc()
        db.refresh(deployment)
        return deployment

    DEPLOYMENT_VERIFICATIONS.labels(status=status.value).inc()
    logger.info(
        "Deployment %s verification: domain=%s email=%s -> %s (%d checks)",
        deployment_id, domain_verified, email_verified, status.value, len(outcomes),
    )
    return deployment


def verify_pending_deployments(
    db: Session,
    *,
    edge_provider: Optional[EdgeStatusChecker] = None,
    resolver: Optional[Resolver] = None,
    limit: Optional[int] = None,
) -> Dict[str, int]:
    """One poll over every production deployment still waiting on DNS."""
    limit = limit or settings.VERIFICATION_POLL_BATCH_SIZE
    ids = [d.id for d in crud_deployment.list_awaiting_verification(db, limit=limit)]
    summary = {"checked": 0, "verified": 0, "skipped": 0}

    for deployment_id in ids:
        try:
            deployment = verify_deployment_dns_records(
                db, deployment_id, edge_provider=edge_provider, resolver=resolver
            )
        except NotFoundError:
            # deleted between listing and checking
            summary["skipped"] += 1
            continue
        summary["checked"] += 1
        if deployment.verification_status == VerificationStatus.VERIFIED.value:
            summary["verified"] += 1

    return summary
