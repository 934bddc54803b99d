import logging

from app.celery_app import celery_app
from app.core.errors import NotFoundError
from app.db.session import SessionLocal
from app.logging_config import setup_logging
from app.services.dns_verification import get_resolver
from app.services.edge_hostname import EdgeHostnameClient
from app.services.verification import (
    verify_deployment_dns_records,
    verify_pending_deployments,
)

logger = logging.getLogger("console.tasks")

setup_logging()


@celery_app.task
def verify_pending_deployments_task():
    """
    Beat task: one verification round for every production deployment
    still waiting on DNS. Never retried; the next beat is the retry.
    """
    db = SessionLocal()
    edge = EdgeHostnameClient.from_settings()
    try:
        summary = verify_pending_deployments(db, edge_provider=edge, resolver=get_resolver())
        logger.info(
            "Verification poll: %(checked)d checked, %(verified)d verified, %(skipped)d skipped",
            summary,
        )
        return summary
    finally:
        edge.close()
        db.close()


@celery_app.task
def verify_deployment_task(deployment_id: str):
    """Single-deployment round, e.g. queued right after provisioning."""
    db = SessionLocal()
    edge = EdgeHostnameClient.from_settings()
    try:
        deployment = verify_deployment_dns_records(
            db, int(deployment_id), edge_provider=edge, resolver=get_resolver()
        )
        return {"deployment_id": deployment_id, "status": deployment.verification_status}
    except NotFoundError:
        logger.info("Deployment %s gone before verification", deployment_id)
        return {"deployment_id": deployment_id, "status": "not_found"}
    finally:
        edge.close()
        db.close()
