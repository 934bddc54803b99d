"""
Project / deployment provisioning API

  POST   /projects                                         project + staging deployment
  POST   /projects/{project_id}/deployments/production     production deployment saga
  DELETE /projects/{project_id}/deployments/{deployment_id}
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.api import deps
from app.crud import crud_deployment
from app.schemas.deployment import (
    Deployment,
    ProductionDeploymentCreate,
    ProjectWithDeployments,
)
from app.services import provisioning

router = APIRouter()


@router.post("", response_model=ProjectWithDeployments, status_code=status.HTTP_201_CREATED)
def create_project(
    name: str = Form(...),
    auth_methods: List[str] = Form(...),
    logo: Optional[UploadFile] = File(None),
    db: Session = Depends(deps.get_db),
    counter: deps.Counter = Depends(deps.get_staging_counter),
    uploader: Optional[deps.LogoUploader] = Depends(deps.get_logo_uploader),
) -> Any:
    """Create a project with its staging deployment."""
    logo_bytes = logo.file.read() if logo is not None else None
    project = provisioning.create_staging_deployment(
        db, name, auth_methods, logo_bytes, counter=counter, uploader=uploader,
    )
    return ProjectWithDeployments(
        id=project.id,
        name=project.name,
        image_url=project.image_url,
        created_at=project.created_at,
        updated_at=project.updated_at,
        deployments=[
            Deployment.model_validate(d)
            for d in crud_deployment.list_active_for_project(db, project.id)
        ],
    )


@router.post(
    "/{project_id}/deployments/production",
    response_model=Deployment,
    status_code=status.HTTP_201_CREATED,
)
def create_production_deployment(
    project_id: int,
    payload: ProductionDeploymentCreate,
    db: Session = Depends(deps.get_db),
    edge: deps.EdgeHostnameClient = Depends(deps.get_edge_client),
    email: deps.EmailDomainClient = Depends(deps.get_email_client),
) -> Any:
    deployment = provisioning.create_production_deployment(
        db, project_id, payload.domain, payload.auth_methods, edge=edge, email=email,
    )
    return Deployment.model_validate(deployment)


@router.delete(
    "/{project_id}/deployments/{deployment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_deployment(
    project_id: int,
    deployment_id: int,
    db: Session = Depends(deps.get_db),
    edge: deps.EdgeHostnameClient = Depends(deps.get_edge_client),
    email: deps.EmailDomainClient = Depends(deps.get_email_client),
) -> Response:
    provisioning.delete_deployment(db, deployment_id, project_id, edge=edge, email=email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
