"""
Deployment provisioning.

  - create_production_deployment: validation, pre-checks, then a saga over
    the tenant store, the edge hostname provider and the email provider
  - create_staging_deployment: project + staging deployment in one transaction
  - delete_deployment: best-effort provider cleanup, then soft delete

Production saga steps (compensation in brackets):

  1. insert_deployment          [soft delete deployment + settings]
  2. persist_domain_records
  3. create_frontend_hostname   [delete hostname]
  4. create_backend_hostname    [delete hostname]
  5. create_email_domain        [delete email domain]
  6. persist_provider_records
"""
import base64
import logging
from typing import Callable, Iterable, List, Optional

import redis
from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import AppError, ConflictError, NotFoundError, StorageError, ValidationError
from app.core.snowflake import next_id
from app.crud import crud_deployment, crud_project
from app.db.transaction import unit_of_work
from app.logging_config import deployment_id_ctx
from app.models.deployment import Deployment
from app.models.project import Project
from app.models.types import utcnow
from app.schemas.deployment import (
    DeploymentMode,
    DeploymentPatch,
    DomainVerificationRecords,
    EmailVerificationRecords,
    VerificationStatus,
)
from app.services.deployment_defaults import build_default_settings
from app.services.edge_hostname import EdgeHostnameClient, generate_domain_verification_records
from app.services.email_domain import EmailDomainClient, build_email_verification_records
from app.services.saga import Saga, SagaContext, SagaStep
from app.services.staging_names import Counter, allocate_staging_hosts
from app.services.validation import (
    validate_auth_methods,
    validate_domain_format,
    validate_project_name,
)

logger = logging.getLogger("console.saga")

# (object key, raw bytes) -> public URL
LogoUploader = Callable[[str, bytes], str]


# ═══════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════

def derive_production_hosts(domain: str) -> tuple:
    """``(frontend_host, backend_host, mail_from_host)`` for a customer domain."""
    domain = domain.lower()
    return (
        f"accounts.{domain}",
        f"frontend.{domain}",
        f"{settings.MAIL_FROM_SUBDOMAIN}.{domain}",
    )


def make_publishable_key(backend_host: str, live: bool) -> str:
    prefix = "pk_live_" if live else "pk_test_"
    encoded = base64.b64encode(f"https://{backend_host}".encode()).decode()
    return prefix + encoded


def _new_deployment(
    *,
    project_id: int,
    mode: DeploymentMode,
    backend_host: str,
    frontend_host: str,
    mail_from_host: str,
    status: VerificationStatus,
) -> Deployment:
    now = utcnow()
    return Deployment(
        id=next_id(),
        project_id=project_id,
        mode=mode.value,
        backend_host=backend_host,
        frontend_host=frontend_host,
        mail_from_host=mail_from_host,
        publishable_key=make_publishable_key(backend_host, live=mode == DeploymentMode.PRODUCTION),
        maintenance_mode=False,
        verification_status=status.value,
        created_at=now,
        updated_at=now,
    )


# ═══════════════════════════════════════════
#  Production
# ═══════════════════════════════════════════

def _production_steps(
    db: Session,
    edge: EdgeHostnameClient,
    email: EmailDomainClient,
) -> List[SagaStep]:

    def insert_deployment(ctx: SagaContext) -> None:
        with unit_of_work(db, "insert deployment"):
            project = crud_project.get_active(db, ctx["project_id"])
            if project is None:
                raise NotFoundError("Project not found")
            deployment = crud_deployment.create(db, db_obj=_new_deployment(
                project_id=project.id,
                mode=DeploymentMode.PRODUCTION,
                backend_host=ctx["backend_host"],
                frontend_host=ctx["frontend_host"],
                mail_from_host=ctx["mail_from_host"],
                status=VerificationStatus.PENDING,
            ))
            deployment_id = deployment.id
            db.add_all(build_default_settings(
                deployment_id,
                app_name=project.name,
                frontend_host=ctx["frontend_host"],
                auth_methods=ctx["auth_methods"],
                logo_image_url=project.image_url,
            ))
        ctx["deployment_id"] = deployment_id
        deployment_id_ctx.set(str(deployment_id))
        logger.info("Inserted production deployment %s for %s", deployment_id, ctx["domain"])

    def remove_deployment(ctx: SagaContext) -> None:
        with unit_of_work(db, "compensate deployment insert"):
            crud_deployment.soft_delete(db, deployment_id=ctx["deployment_id"])
            crud_deployment.delete_default_roles(db, deployment_id=ctx["deployment_id"])

    def persist_domain_records(ctx: SagaContext) -> None:
        records = generate_domain_verification_records(ctx["frontend_host"], ctx["backend_host"])
        with unit_of_work(db, "persist domain records"):
            deployment = crud_deployment.get(db, ctx["deployment_id"])
            crud_deployment.apply_patch(
                db, db_obj=deployment,
                patch=DeploymentPatch(domain_verification_records=records),
            )
        ctx["domain_records"] = records

    def create_frontend_hostname(ctx: SagaContext) -> None:
        if ctx.get("frontend_hostname_id"):
            return
        created = edge.create_custom_hostname(ctx["frontend_host"], settings.EDGE_ACCOUNTS_ORIGIN)
        ctx["frontend_hostname_id"] = created.id

    def delete_frontend_hostname(ctx: SagaContext) -> None:
        edge.delete_custom_hostname(ctx["frontend_hostname_id"])
        ctx.pop("frontend_hostname_id")

    def create_backend_hostname(ctx: SagaContext) -> None:
        if ctx.get("backend_hostname_id"):
            return
        created = edge.create_custom_hostname(ctx["backend_host"], settings.EDGE_API_ORIGIN)
        ctx["backend_hostname_id"] = created.id

    def delete_backend_hostname(ctx: SagaContext) -> None:
        edge.delete_custom_hostname(ctx["backend_hostname_id"])
        ctx.pop("backend_hostname_id")

    def create_email_domain(ctx: SagaContext) -> None:
        if ctx.get("email_domain") is not None:
            return
        ctx["email_domain"] = email.create_domain(ctx["mail_from_host"])

    def delete_email_domain(ctx: SagaContext) -> None:
        email.delete_domain(ctx["email_domain"].id)
        ctx.pop("email_domain")

    def persist_provider_records(ctx: SagaContext) -> None:
        domain_records: DomainVerificationRecords = ctx["domain_records"]
        domain_records.frontend_hostname_id = ctx["frontend_hostname_id"]
        domain_records.backend_hostname_id = ctx["backend_hostname_id"]
        email_records = build_email_verification_records(ctx["email_domain"])

        with unit_of_work(db, "persist provider records"):
            deployment = crud_deployment.get(db, ctx["deployment_id"])
            crud_deployment.apply_patch(db, db_obj=deployment, patch=DeploymentPatch(
                domain_verification_records=domain_records,
                email_verification_records=email_records,
            ))

    return [
        SagaStep("insert_deployment", insert_deployment, compensation=remove_deployment),
        SagaStep("persist_domain_records", persist_domain_records),
        SagaStep("create_frontend_hostname", create_frontend_hostname, compensation=delete_frontend_hostname),
        SagaStep("create_backend_hostname", create_backend_hostname, compensation=delete_backend_hostname),
        SagaStep("create_email_domain", create_email_domain, compensation=delete_email_domain),
        SagaStep("persist_provider_records", persist_provider_records),
    ]


def _check_production_preconditions(db: Session, project_id: int, hosts: Iterable[str]) -> None:
    # read-only; rolled back so the saga starts from a clean transaction
    try:
        if crud_project.get_active(db, project_id) is None:
            raise NotFoundError("Project not found")
        if crud_deployment.get_active_production(db, project_id) is not None:
            raise ConflictError("A production deployment already exists for this project")
        if crud_deployment.find_host_collision(db, hosts) is not None:
            raise ConflictError("Domain is already in use by another deployment")
    finally:
        db.rollback()


def _check_resume_target(context: SagaContext, project_id: int, domain: str) -> None:
    # provider ids in the context belong to the request that produced them
    if "project_id" in context and context["project_id"] != project_id:
        raise ValidationError("Saga context belongs to another project")
    if "domain" in context and context["domain"] != domain.lower():
        raise ValidationError("Saga context belongs to another domain")


def create_production_deployment(
    db: Session,
    project_id: int,
    domain: str,
    auth_methods: List[str],
    *,
    edge: EdgeHostnameClient,
    email: EmailDomainClient,
    context: Optional[SagaContext] = None,
) -> Deployment:
    """
    Provision a production deployment for ``domain`` under ``project_id``.

    Returns the deployment in ``pending`` state with the full DNS record sets
    the customer has to publish. Any failure after the first write is
    compensated before it is raised. Passing back the ``context`` of a failed
    run resumes it without repeating provider calls that already succeeded.

    Raises:
        ValidationError, NotFoundError, ConflictError: before any mutation
        ExternalError: provider failure, ``step`` names the saga step
        StorageError: tenant store failure
    """
    validate_domain_format(domain)
    validate_auth_methods(auth_methods)

    frontend_host, backend_host, mail_from_host = derive_production_hosts(domain)
    if context is None:
        _check_production_preconditions(db, project_id, (frontend_host, backend_host, mail_from_host))
        context = {}
    else:
        _check_resume_target(context, project_id, domain)

    context.update(
        project_id=project_id,
        domain=domain.lower(),
        auth_methods=list(auth_methods),
        frontend_host=frontend_host,
        backend_host=backend_host,
        mail_from_host=mail_from_host,
    )

    Saga("production_deployment", _production_steps(db, edge, email)).run(context)

    deployment = crud_deployment.get(db, context["deployment_id"])
    logger.info(
        "Production deployment %s provisioned (frontend=%s backend=%s)",
        deployment.id, frontend_host, backend_host,
    )
    return deployment


# ═══════════════════════════════════════════
#  Staging
# ═══════════════════════════════════════════

def create_staging_deployment(
    db: Session,
    name: str,
    auth_methods: List[str],
    logo: Optional[bytes] = None,
    *,
    counter: Counter,
    uploader: Optional[LogoUploader] = None,
) -> Project:
    """Create a project together with its first (staging) deployment."""
    validate_project_name(name)
    validate_auth_methods(auth_methods)

    if logo and uploader is None:
        raise ValidationError("Logo upload is not available")

    try:
        backend_host, frontend_host = allocate_staging_hosts(counter)
    except redis.RedisError as exc:
        logger.error("Staging host counter unavailable: %s", exc)
        raise StorageError("Could not allocate a staging hostname") from exc

    project_id = next_id()
    logo_key = f"projects/{project_id}/logo.png"
    image_url = uploader(logo_key, logo) if logo else ""

    try:
        with unit_of_work(db, "create staging deployment"):
            project = crud_project.create(db, name=name, image_url=image_url, project_id=project_id)
            deployment = crud_deployment.create(db, db_obj=_new_deployment(
                project_id=project.id,
                mode=DeploymentMode.STAGING,
                backend_host=backend_host,
                frontend_host=frontend_host,
                mail_from_host=settings.STAGING_MAIL_FROM_HOST,
                status=VerificationStatus.VERIFIED,
            ))
            db.add_all(build_default_settings(
                deployment.id,
                app_name=name,
                frontend_host=frontend_host,
                auth_methods=auth_methods,
                logo_image_url=image_url,
            ))
    except AppError:
        if image_url:
            # the store has no cleanup hook for the CDN
            logger.error("Project %s was not created; uploaded logo %s is orphaned", project_id, logo_key)
        raise

    logger.info("Created project %s with staging deployment %s (%s)", project.id, deployment.id, backend_host)
    return project


# ═══════════════════════════════════════════
#  Delete
# ═══════════════════════════════════════════

def _cleanup_provider_resources(
    deployment: Deployment,
    edge: EdgeHostnameClient,
    email: EmailDomainClient,
) -> None:
    """Best-effort: every failure is logged and the delete carries on."""
    if deployment.domain_verification_records:
        domain_records = DomainVerificationRecords.model_validate(deployment.domain_verification_records)
        for hostname_id in (domain_records.frontend_hostname_id, domain_records.backend_hostname_id):
            if not hostname_id:
                continue
            try:
                edge.delete_custom_hostname(hostname_id)
            except Exception:
                logger.exception("Failed to delete custom hostname %s", hostname_id)

    if deployment.email_verification_records:
        email_records = EmailVerificationRecords.model_validate(deployment.email_verification_records)
        if email_records.email_domain_id is not None:
            try:
                email.delete_domain(email_records.email_domain_id)
            except Exception:
                logger.exception("Failed to delete email domain %s", email_records.email_domain_id)


def delete_deployment(
    db: Session,
    deployment_id: int,
    project_id: int,
    *,
    edge: EdgeHostnameClient,
    email: EmailDomainClient,
) -> None:
    deployment = crud_deployment.get_active(db, deployment_id, project_id=project_id)
    if deployment is None:
        raise NotFoundError("Deployment not found")
    if crud_deployment.count_active_for_project(db, project_id) <= 1:
        raise ConflictError("Cannot delete the last deployment of a project")

    deployment_id_ctx.set(str(deployment_id))
    if deployment.mode == DeploymentMode.PRODUCTION.value:
        _cleanup_provider_resources(deployment, edge, email)

    with unit_of_work(db, "delete deployment"):
        crud_deployment.soft_delete(db, deployment_id=deployment_id)
        crud_deployment.delete_default_roles(db, deployment_id=deployment_id)

    logger.info("Deleted deployment %s of project %s", deployment_id, project_id)
