"""
Deployment read + DNS verification API

  GET  /deployments/{deployment_id}
  POST /deployments/{deployment_id}/verify-dns   one verification round, now
"""
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api import deps
from app.core.errors import NotFoundError
from app.crud import crud_deployment
from app.schemas.deployment import Deployment
from app.services.verification import verify_deployment_dns_records

router = APIRouter()


@router.get("/{deployment_id}", response_model=Deployment)
def read_deployment(
    deployment_id: int,
    db: Session = Depends(deps.get_db),
) -> Any:
    deployment = crud_deployment.get_active(db, deployment_id)
    if deployment is None:
        raise NotFoundError("Deployment not found")
    return Deployment.model_validate(deployment)


@router.post("/{deployment_id}/verify-dns", response_model=Deployment)
def verify_dns(
    deployment_id: int,
    db: Session = Depends(deps.get_db),
    edge: deps.EdgeHostnameClient = Depends(deps.get_edge_client),
    resolver: deps.DnsResolver = Depends(deps.get_dns_resolver),
) -> Any:
    """Run a verification round immediately instead of waiting for the poller."""
    deployment = verify_deployment_dns_records(
        db, deployment_id, edge_provider=edge, resolver=resolver,
    )
    return Deployment.model_validate(deployment)
