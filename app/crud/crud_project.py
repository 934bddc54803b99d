from typing import Optional

from sqlalchemy.orm import Session

from app.core.snowflake import next_id
from app.models.project import Project
from app.models.types import utcnow


def get_active(db: Session, project_id: int) -> Optional[Project]:
    return db.query(Project).filter(
        Project.id == project_id,
        Project.deleted_at.is_(None),
    ).first()


def create(db: Session, *, name: str, image_url: str = "", project_id: Optional[int] = None) -> Project:
    now = utcnow()
    db_obj = Project(
        id=project_id or next_id(),
        name=name,
        image_url=image_url,
        created_at=now,
        updated_at=now,
    )
    db.add(db_obj)
    db.flush()
    return db_obj
