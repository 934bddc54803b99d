from fastapi import APIRouter, Depends

from app.api import deps
from app.api.v1.endpoints import deployments, projects

api_router = APIRouter(dependencies=[Depends(deps.require_console_token)])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(deployments.router, prefix="/deployments", tags=["deployments"])
