"""
Unit-of-work helper.

Commits on success, rolls back on failure and maps SQLAlchemy errors onto
the application taxonomy: unique-index violations become ``ConflictError``,
everything else ``StorageError``.
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, StorageError

logger = logging.getLogger("console.db")

# partial unique index name -> user facing message
_UNIQUE_INDEX_MESSAGES = {
    "uq_deployments_project_production": "A production deployment already exists for this project",
    "uq_deployments_backend_host_active": "Domain is already in use by another deployment",
    "uq_deployments_frontend_host_active": "Domain is already in use by another deployment",
    "uq_deployments_mail_from_host_active": "Domain is already in use by another deployment",
}


def _conflict_message(exc: IntegrityError) -> str:
    text = str(exc.orig)
    for index_name, message in _UNIQUE_INDEX_MESSAGES.items():
        if index_name in text:
            return message
    # SQLite reports the columns rather than the index name
    if "deployments.project_id" in text:
        return _UNIQUE_INDEX_MESSAGES["uq_deployments_project_production"]
    if "deployments." in text and "_host" in text:
        return _UNIQUE_INDEX_MESSAGES["uq_deployments_backend_host_active"]
    return "Conflicting record already exists"


@contextmanager
def unit_of_work(db: Session, action: str) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("%s rejected by a uniqueness constraint: %s", action, exc.orig)
        raise ConflictError(_conflict_message(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed in the tenant store", action)
        raise StorageError(f"{action} failed: {exc.__class__.__name__}") from exc
    except Exception:
        db.rollback()
        raise
