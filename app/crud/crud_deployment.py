from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models.deployment import Deployment, DnsVerificationEvent
from app.models.deployment_settings import (
    OrganizationRole,
    SOFT_DELETED_SETTINGS,
    WorkspaceRole,
)
from app.models.types import utcnow
from app.schemas.deployment import DeploymentMode, DeploymentPatch, VerificationStatus


def get(db: Session, deployment_id: int) -> Optional[Deployment]:
    return db.query(Deployment).filter(Deployment.id == deployment_id).first()


def get_active(db: Session, deployment_id: int, project_id: Optional[int] = None) -> Optional[Deployment]:
    q = db.query(Deployment).filter(
        Deployment.id == deployment_id,
        Deployment.deleted_at.is_(None),
    )
    if project_id is not None:
        q = q.filter(Deployment.project_id == project_id)
    return q.first()


def get_active_production(db: Session, project_id: int) -> Optional[Deployment]:
    return db.query(Deployment).filter(
        Deployment.project_id == project_id,
        Deployment.mode == DeploymentMode.PRODUCTION.value,
        Deployment.deleted_at.is_(None),
    ).first()


def find_host_collision(db: Session, hosts: Iterable[str]) -> Optional[Deployment]:
    """Return any active deployment already using one of ``hosts`` in any host column."""
    hosts = list(hosts)
    return db.query(Deployment).filter(
        Deployment.deleted_at.is_(None),
        or_(
            Deployment.backend_host.in_(hosts),
            Deployment.frontend_host.in_(hosts),
            Deployment.mail_from_host.in_(hosts),
        ),
    ).first()


def count_active_for_project(db: Session, project_id: int) -> int:
    return db.query(func.count(Deployment.id)).filter(
        Deployment.project_id == project_id,
        Deployment.deleted_at.is_(None),
    ).scalar() or 0


def list_active_for_project(db: Session, project_id: int) -> List[Deployment]:
    return db.query(Deployment).filter(
        Deployment.project_id == project_id,
        Deployment.deleted_at.is_(None),
    ).order_by(Deployment.id).all()


def list_awaiting_verification(db: Session, limit: int = 100) -> List[Deployment]:
    """Active production deployments whose DNS has not converged yet."""
    return db.query(Deployment).filter(
        Deployment.mode == DeploymentMode.PRODUCTION.value,
        Deployment.deleted_at.is_(None),
        Deployment.verification_status.in_(
            [VerificationStatus.PENDING.value, VerificationStatus.IN_PROGRESS.value]
        ),
    ).order_by(Deployment.updated_at).limit(limit).all()


def create(db: Session, *, db_obj: Deployment) -> Deployment:
    db.add(db_obj)
    db.flush()
    return db_obj


def _column_value(value):
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    return value


def apply_patch(db: Session, *, db_obj: Deployment, patch: DeploymentPatch) -> Deployment:
    """Write only the fields set on ``patch``; always bumps ``updated_at``."""
    for field in patch.model_fields_set:
        setattr(db_obj, field, _column_value(getattr(patch, field)))
    db_obj.updated_at = utcnow()
    db.add(db_obj)
    db.flush()
    return db_obj


def soft_delete(db: Session, *, deployment_id: int, now: Optional[datetime] = None) -> None:
    """Soft delete a deployment and its settings rows; default roles are removed."""
    now = now or utcnow()
    db.query(Deployment).filter(Deployment.id == deployment_id).update(
        {"deleted_at": now, "updated_at": now},
        synchronize_session="fetch",
    )
    for model in SOFT_DELETED_SETTINGS:
        db.query(model).filter(
            model.deployment_id == deployment_id,
            model.deleted_at.is_(None),
        ).update({"deleted_at": now, "updated_at": now}, synchronize_session=False)
    db.flush()


def delete_default_roles(db: Session, *, deployment_id: int) -> None:
    # b2b settings reference the roles; they are soft deleted first by soft_delete()
    for model in (WorkspaceRole, OrganizationRole):
        db.query(model).filter(model.deployment_id == deployment_id).delete(
            synchronize_session=False
        )


def add_verification_events(db: Session, events: Iterable[DnsVerificationEvent]) -> None:
    db.add_all(list(events))
